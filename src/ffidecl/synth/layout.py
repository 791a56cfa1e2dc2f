from __future__ import annotations

import itertools
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional

from .ffi_types import KIND_FUNCTION_POINTER, KIND_STRUCT, KIND_UNION, FFIType
from .ffi_utils import sanitize_name
from .resolver import CONTEXT_FIELD, FUNCTION_POINTER, INLINE_ARRAY, TypeResolver


# Element types C# accepts in a `fixed` buffer.
FIXED_BUFFER_TYPES = {
    "bool",
    "byte",
    "char",
    "short",
    "int",
    "long",
    "sbyte",
    "ushort",
    "uint",
    "ulong",
    "float",
    "double",
}

INTERNAL_PREFIX = "INTERNAL_"


@dataclass
class Layout:
    name: str
    fields: list[tuple[int, str]] = field(default_factory=list)
    has_union: bool = False
    pending: list[tuple[str, FFIType]] = field(default_factory=list)

    def extend(self, other: "Layout") -> None:
        self.fields.extend(other.fields)
        self.has_union = self.has_union or other.has_union
        self.pending.extend(other.pending)


def _layout_fields(
    resolver: TypeResolver,
    aggregate: FFIType,
    base_offset: int,
    type_prefix: str,
    name_prefix: str,
    log: Optional[Callable[[str], None]],
    anonymous: Iterator[int],
) -> Layout:
    out = Layout(name=aggregate.name or "", has_union=aggregate.kind == KIND_UNION)

    for member in aggregate.fields:
        member_type = member.type
        raw_name = member.name
        if raw_name:
            field_name = sanitize_name(f"{name_prefix}{raw_name}")
        else:
            # Numbered across nested unions so hoisted names stay unique.
            field_name = f"{name_prefix}anonymous{next(anonymous)}"
        offset = base_offset + (member.bit_offset or 0) // 8
        resolved = resolver.resolve_fully(member_type)
        type_name = resolver.classify(resolved, CONTEXT_FIELD)

        if type_name == "" and resolved.kind == KIND_UNION:
            nested_prefix = f"{name_prefix}{raw_name}_" if raw_name else name_prefix
            out.extend(_layout_fields(resolver, resolved, offset, type_prefix, nested_prefix, log, anonymous))
            out.has_union = True
            continue

        if type_name == "" and resolved.kind == KIND_STRUCT:
            internal_name = f"{INTERNAL_PREFIX}{type_prefix}{field_name}"
            if log is not None:
                log(f"{aggregate.name or type_prefix}.{field_name}: hoisted anonymous struct as {internal_name}")
            out.pending.append((internal_name, resolved))
            out.fields.append((offset, f"public {internal_name} {field_name};"))
            continue

        if type_name == INLINE_ARRAY:
            out.fields.extend(_array_fields(resolver, resolved, field_name, offset, member.bit_size))
            continue

        if type_name == FUNCTION_POINTER:
            if member_type.kind == KIND_FUNCTION_POINTER:
                marker = "WARN_ANONYMOUS_FUNCTION_POINTER"
            else:
                marker = member_type.tag
            out.fields.append((offset, f"public IntPtr {field_name}; // {marker}"))
            continue

        out.fields.append((offset, f"public {type_name} {field_name};"))

    return out


def _array_fields(
    resolver: TypeResolver,
    array: FFIType,
    field_name: str,
    offset: int,
    field_bit_size: Optional[int] = None,
) -> list[tuple[int, str]]:
    count = array.size or 0
    element = resolver.resolve_fully(array.type) if array.type is not None else FFIType(tag="unsigned-char")
    element_name = resolver.classify(element, CONTEXT_FIELD)
    if element_name in FIXED_BUFFER_TYPES:
        return [(offset, f"public fixed {element_name} {field_name}[{count}];")]

    # Fixed buffers only take primitives; spell everything else out element by element.
    total_bits = array.bit_size or field_bit_size
    if total_bits and count:
        element_size = total_bits // 8 // count
    else:
        element_size = resolver.byte_size(element)
    return [
        (offset + element_size * idx, f"public {element_name} {field_name}{idx};")
        for idx in range(count)
    ]


def build_layout(
    resolver: TypeResolver,
    name: str,
    aggregate: FFIType,
    log: Optional[Callable[[str], None]] = None,
) -> Layout:
    layout = Layout(name=name)
    layout.extend(_layout_fields(resolver, aggregate, 0, f"{name}_", "", log, itertools.count()))
    return layout


def build_aggregates(
    resolver: TypeResolver,
    name: str,
    aggregate: FFIType,
    log: Optional[Callable[[str], None]] = None,
) -> list[Layout]:
    """Lay out an aggregate plus every anonymous struct hoisted out of it.

    Hoisted aggregates are laid out in the order they were discovered; each
    hoist removes one level of anonymous nesting, so the queue drains.
    """

    layouts: list[Layout] = []
    queue: deque[tuple[str, FFIType]] = deque([(name, aggregate)])
    while queue:
        current_name, current = queue.popleft()
        layout = build_layout(resolver, current_name, current, log)
        layouts.append(layout)
        queue.extend(layout.pending)
    return layouts


def render_layout(layout: Layout) -> list[str]:
    lines: list[str] = []
    if layout.has_union:
        lines.append("[StructLayout(LayoutKind.Explicit)]")
    else:
        lines.append("[StructLayout(LayoutKind.Sequential)]")
    lines.append(f"public struct {layout.name}")
    lines.append("{")
    for offset, text in layout.fields:
        if layout.has_union:
            lines.append(f"[FieldOffset({offset})]")
        lines.append(text)
    lines.append("}")
    lines.append("")
    return lines
