from __future__ import annotations

from typing import Callable, Iterable, Optional

from .errors import DescriptorError
from .ffi_types import (
    KIND_ARRAY,
    KIND_ENUM,
    KIND_FUNCTION_POINTER,
    KIND_POINTER,
    KIND_PRIMITIVE,
    KIND_STRUCT,
    KIND_TYPEDEF,
    KIND_UNION,
    Entry,
    FFIType,
)
from .knowledge import KnowledgeTables


CONTEXT_FIELD = "field"
CONTEXT_FUNCTION = "function"

FUNCTION_POINTER = "FUNCTION_POINTER"
INLINE_ARRAY = "INLINE_ARRAY"
UTF8_STRING = "UTF8_STRING"

SENTINELS = {FUNCTION_POINTER, INLINE_ARRAY, UTF8_STRING}

PRIMITIVE_TYPE_MAP = {
    "void": "void",
    "_Bool": "NativeBool",
    "bool": "NativeBool",
    "char": "byte",
    "signed-char": "sbyte",
    "unsigned-char": "byte",
    "short": "short",
    "unsigned-short": "ushort",
    "int": "int",
    "unsigned-int": "uint",
    "long": "long",
    "unsigned-long": "ulong",
    "long-long": "long",
    "unsigned-long-long": "ulong",
    "float": "float",
    "double": "double",
    "long-double": "double",
    "int8_t": "sbyte",
    "uint8_t": "byte",
    "int16_t": "short",
    "uint16_t": "ushort",
    "int32_t": "int",
    "uint32_t": "uint",
    "int64_t": "long",
    "uint64_t": "ulong",
    "intptr_t": "IntPtr",
    "uintptr_t": "UIntPtr",
    "size_t": "UIntPtr",
    "ssize_t": "IntPtr",
    "wchar_t": "char",
}

PRIMITIVE_BYTE_SIZES = {
    "_Bool": 1,
    "bool": 1,
    "char": 1,
    "signed-char": 1,
    "unsigned-char": 1,
    "short": 2,
    "unsigned-short": 2,
    "int": 4,
    "unsigned-int": 4,
    "long": 8,
    "unsigned-long": 8,
    "long-long": 8,
    "unsigned-long-long": 8,
    "float": 4,
    "double": 8,
    "long-double": 16,
    "int8_t": 1,
    "uint8_t": 1,
    "int16_t": 2,
    "uint16_t": 2,
    "int32_t": 4,
    "uint32_t": 4,
    "int64_t": 8,
    "uint64_t": 8,
    "intptr_t": 8,
    "uintptr_t": 8,
    "size_t": 8,
    "ssize_t": 8,
    "wchar_t": 2,
}

POINTER_BYTE_SIZE = 8
ENUM_BYTE_SIZE = 4


class TypeResolver:
    def __init__(
        self,
        typedefs: dict[str, FFIType],
        knowledge: KnowledgeTables,
        in_scope: Callable[[Optional[str]], bool],
    ) -> None:
        self.typedefs = typedefs
        self.knowledge = knowledge
        self.in_scope = in_scope

    @classmethod
    def from_entries(
        cls,
        entries: Iterable[Entry],
        knowledge: KnowledgeTables,
        in_scope: Callable[[Optional[str]], bool],
    ) -> "TypeResolver":
        entries = list(entries)
        typedefs: dict[str, FFIType] = {}
        # Typedefs first so that `typedef struct Foo Foo;` resolves to the struct body.
        for entry in entries:
            if entry.tag == "typedef" and entry.name and entry.type is not None:
                typedefs[entry.name] = entry.type
        for entry in entries:
            if entry.tag in {"struct", "union"} and entry.name:
                typedefs[entry.name] = entry.as_type()
        return cls(typedefs, knowledge, in_scope)

    def is_flag_type(self, name: Optional[str]) -> bool:
        return self.knowledge.is_flag_type(name)

    def resolve(self, type_ref: FFIType) -> FFIType:
        if not self.in_scope(type_ref.tag):
            return type_ref
        if self.is_flag_type(type_ref.tag):
            return type_ref
        return self.typedefs.get(type_ref.tag, type_ref)

    def resolve_fully(self, type_ref: FFIType) -> FFIType:
        seen: set[str] = set()
        current = type_ref
        while current.kind == KIND_TYPEDEF and current.tag not in seen:
            seen.add(current.tag)
            target = self.resolve(current)
            if target is current:
                break
            current = target
        return current

    def is_defined_type(self, type_ref: FFIType) -> bool:
        if not type_ref.tag:
            return False
        return type_ref.name != "void" or type_ref.tag in self.typedefs

    def is_char(self, type_ref: FFIType) -> bool:
        return type_ref.kind == KIND_PRIMITIVE and type_ref.tag == "char"

    def classify(self, type_ref: FFIType, context: str) -> str:
        kind = type_ref.kind
        if kind == KIND_POINTER:
            return self._classify_pointer(type_ref, context)
        if kind == KIND_PRIMITIVE:
            return PRIMITIVE_TYPE_MAP[type_ref.tag]
        if kind == KIND_FUNCTION_POINTER:
            return FUNCTION_POINTER
        if kind == KIND_ARRAY:
            return INLINE_ARRAY
        if kind in {KIND_STRUCT, KIND_UNION, KIND_ENUM}:
            return type_ref.name or ""
        if kind == KIND_TYPEDEF:
            if type_ref.tag in self.knowledge.type_map:
                return self.knowledge.type_map[type_ref.tag]
            return PRIMITIVE_TYPE_MAP.get(type_ref.tag, type_ref.tag)
        raise DescriptorError(f"unhandled type kind '{kind}' for tag '{type_ref.tag}'")

    def _classify_pointer(self, type_ref: FFIType, context: str) -> str:
        pointee = type_ref.type
        if pointee is None or not self.is_defined_type(pointee):
            return "IntPtr"
        pointee = self.resolve_fully(pointee)
        if self.is_char(pointee):
            return "byte*" if context == CONTEXT_FIELD else UTF8_STRING
        if context != CONTEXT_FIELD:
            return "IntPtr"
        inner = self.classify(pointee, context)
        if not inner or inner in SENTINELS:
            return "IntPtr"
        return f"{inner}*"

    def byte_size(self, type_ref: FFIType, _seen: Optional[set[str]] = None) -> int:
        if type_ref.bit_size:
            return type_ref.bit_size // 8
        # Covers primitive tags and the well-known typedef names outside the library.
        if type_ref.tag in PRIMITIVE_BYTE_SIZES:
            return PRIMITIVE_BYTE_SIZES[type_ref.tag]
        kind = type_ref.kind
        if kind == KIND_PRIMITIVE:
            return 0
        if kind in {KIND_POINTER, KIND_FUNCTION_POINTER}:
            return POINTER_BYTE_SIZE
        if kind == KIND_ENUM:
            return ENUM_BYTE_SIZE
        if kind in {KIND_STRUCT, KIND_UNION}:
            body = self.typedefs.get(type_ref.name or "")
            if body is not None and body.bit_size:
                return body.bit_size // 8
            return 0
        if kind == KIND_ARRAY:
            if type_ref.type is None or not type_ref.size:
                return 0
            return self.byte_size(self.resolve_fully(type_ref.type)) * type_ref.size
        seen = _seen or set()
        target = self.typedefs.get(type_ref.tag)
        if target is None or type_ref.tag in seen:
            return 0
        seen.add(type_ref.tag)
        return self.byte_size(target, seen)
