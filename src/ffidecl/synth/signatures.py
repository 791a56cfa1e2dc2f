from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Callable, Optional

from .diagnostics import MISSING_COUNT_PARAM, UNKNOWN_POINTER, UNKNOWN_STRING_OWNER
from .ffi_types import KIND_FUNCTION_POINTER, KIND_POINTER, Entry, FFIType
from .ffi_utils import sanitize_name, warn
from .knowledge import RETURN_KEY, KnowledgeTables, PointerIntent, StringOwner
from .resolver import (
    CONTEXT_FUNCTION,
    FUNCTION_POINTER,
    INLINE_ARRAY,
    UTF8_STRING,
    TypeResolver,
)


RETURN_NONE = "none"
RETURN_STRING = "string"
RETURN_ARRAY = "array"

VARIADIC_TAGS = {"va_list", "__builtin_va_list"}

LIBRARY_OWNED_MARSHALLER = "LibraryOwnedStringMarshaller"
CALLER_OWNED_MARSHALLER = "CallerOwnedStringMarshaller"

UNKNOWN_POINTER_MARKER = "// WARN_UNKNOWN_POINTER_PARAMETER"
MISSING_COUNT_PLACEHOLDER = "WARN_MISSING_COUNT_PARAM_NAME"

ARGUMENT_MODIFIERS = ("ref ", "in ", "out ")


@dataclass
class Signature:
    name: str
    return_type: str = "void"
    return_intent: str = RETURN_NONE
    array_element: Optional[str] = None
    parameters: list[tuple[str, str]] = field(default_factory=list)
    string_params: list[str] = field(default_factory=list)
    has_unknown_pointer: bool = False

    @property
    def requires_string_marshalling(self) -> bool:
        return self.return_intent == RETURN_STRING or bool(self.string_params)

    def parameter_list(self, skip: Optional[str] = None) -> str:
        return ", ".join(f"{ptype} {pname}" for ptype, pname in self.parameters if pname != skip)


@dataclass
class FunctionDecl:
    name: str
    signature: Signature
    lines: list[str] = field(default_factory=list)
    diagnostics: list[tuple[str, str]] = field(default_factory=list)


def is_variadic(entry: Entry) -> bool:
    if entry.variadic:
        return True
    return any(param.type.tag in VARIADIC_TAGS for param in entry.parameters)


def _spell(type_name: str) -> str:
    return "string" if type_name == UTF8_STRING else type_name


def _argument(ptype: str, pname: str) -> str:
    for modifier in ARGUMENT_MODIFIERS:
        if ptype.startswith(modifier):
            return f"{modifier}{pname}"
    return pname


class SignatureSynthesizer:
    def __init__(
        self,
        resolver: TypeResolver,
        knowledge: KnowledgeTables,
        library_for: Callable[[str], str],
        log: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.resolver = resolver
        self.knowledge = knowledge
        self.library_for = library_for
        self._log = log

    def synthesize(self, entry: Entry) -> Optional[FunctionDecl]:
        if is_variadic(entry):
            if self._log is not None:
                self._log(f"{entry.name}: variadic, skipped")
            return None

        signature = Signature(name=entry.name)
        decl = FunctionDecl(name=entry.name, signature=signature)

        return_type = entry.return_type or FFIType(tag="void")
        signature.return_type = self._component(decl, entry, RETURN_KEY, return_type, is_return=True)
        for idx, param in enumerate(entry.parameters):
            raw_name = param.name or f"arg{idx}"
            type_name = self._component(decl, entry, raw_name, param.type, is_return=False)
            signature.parameters.append((_spell(type_name), self.knowledge.rename(sanitize_name(raw_name))))

        if signature.return_intent == RETURN_ARRAY:
            decl.lines.extend(self._array_wrapper(decl, entry))
        decl.lines.extend(self._declaration(decl, entry))
        return decl

    def _component(
        self,
        decl: FunctionDecl,
        entry: Entry,
        component: str,
        type_ref: FFIType,
        is_return: bool,
    ) -> str:
        signature = decl.signature
        if type_ref.kind == KIND_POINTER and type_ref.type is not None and self.resolver.is_defined_type(type_ref.type):
            return self._pointer_component(decl, entry, component, type_ref, is_return)

        resolved = self.resolver.resolve_fully(type_ref)
        type_name = self.resolver.classify(resolved, CONTEXT_FUNCTION)
        if type_name == FUNCTION_POINTER:
            if is_return or type_ref.kind == KIND_FUNCTION_POINTER or type_ref.tag in self.knowledge.opaque_callbacks:
                return "IntPtr"
            return type_ref.tag
        if type_name == INLINE_ARRAY:
            return "IntPtr"
        if type_name == UTF8_STRING:
            # A typedef that names `char *` directly.
            if is_return:
                signature.return_intent = RETURN_STRING
            else:
                signature.string_params.append(component)
        return type_name or "IntPtr"

    def _pointer_component(
        self,
        decl: FunctionDecl,
        entry: Entry,
        component: str,
        type_ref: FFIType,
        is_return: bool,
    ) -> str:
        signature = decl.signature
        pointee = self.resolver.resolve_fully(type_ref.type)
        if self.resolver.is_char(pointee):
            if is_return:
                signature.return_intent = RETURN_STRING
            else:
                signature.string_params.append(component)
            return UTF8_STRING

        sub = self.resolver.classify(pointee, CONTEXT_FUNCTION)
        if sub in {UTF8_STRING, INLINE_ARRAY}:
            return "IntPtr"
        if sub == FUNCTION_POINTER:
            sub = type_ref.type.tag
        if not sub:
            sub = "IntPtr"

        intent = self.knowledge.pointer_intent(entry.name, component)
        if intent is None:
            signature.has_unknown_pointer = True
            decl.diagnostics.append(
                (UNKNOWN_POINTER, f"{json.dumps(entry.name)}: {{{json.dumps(component)}: \"unknown\"}}, // {entry.location}")
            )
            if is_return or sub == "void":
                return "IntPtr"
            return f"ref {sub}"

        if is_return:
            if intent in {PointerIntent.REF, PointerIntent.IN, PointerIntent.OUT, PointerIntent.ARRAY}:
                warn(f"{entry.name}: intent '{intent.value}' unsupported for return types; falling back to IntPtr")
                return "IntPtr"
            if intent == PointerIntent.OUT_ARRAY:
                signature.return_intent = RETURN_ARRAY
                signature.array_element = sub
                return "IntPtr"

        if intent == PointerIntent.HANDLE:
            return "IntPtr"
        if intent == PointerIntent.POINTER:
            return f"{sub}*"
        if intent == PointerIntent.UNKNOWN:
            signature.has_unknown_pointer = True
            decl.diagnostics.append(
                (UNKNOWN_POINTER, f"{json.dumps(entry.name)}: {{{json.dumps(component)}: \"unknown\"}}, // {entry.location}")
            )
            return "IntPtr"
        if sub == "void":
            # `ref void` and `Span<void>` do not exist.
            return "IntPtr"
        if intent == PointerIntent.REF:
            return f"ref {sub}"
        if intent == PointerIntent.IN:
            return f"in {sub}"
        if intent == PointerIntent.OUT:
            return f"out {sub}"
        # ARRAY and OUT_ARRAY in parameter position.
        return f"Span<{sub}>"

    def _array_wrapper(self, decl: FunctionDecl, entry: Entry) -> list[str]:
        signature = decl.signature
        count_param = self.knowledge.array_count_param(entry.name)
        if count_param is None:
            decl.diagnostics.append(
                (MISSING_COUNT_PARAM, f"{json.dumps(entry.name)}: \"{MISSING_COUNT_PLACEHOLDER}\", // {entry.location}")
            )
            return []

        count_name = self.knowledge.rename(sanitize_name(count_param))
        if count_name not in {pname for _, pname in signature.parameters}:
            warn(f"{entry.name}: count parameter '{count_param}' is not a parameter; wrapper skipped")
            decl.diagnostics.append(
                (MISSING_COUNT_PARAM, f"{json.dumps(entry.name)}: \"{MISSING_COUNT_PLACEHOLDER}\", // {entry.location}")
            )
            return []

        arguments = []
        for ptype, pname in signature.parameters:
            if pname == count_name:
                arguments.append(f"out var {pname}")
            else:
                arguments.append(_argument(ptype, pname))
        element = signature.array_element
        if self._log is not None:
            self._log(f"{entry.name}: Span<{element}> wrapper counted by '{count_name}'")
        return [
            f"public static Span<{element}> {entry.name}({signature.parameter_list(skip=count_name)})",
            "{",
            f"var result = {entry.name}({', '.join(arguments)});",
            f"return new Span<{element}>((void*) result, {count_name});",
            "}",
            "",
        ]

    def _declaration(self, decl: FunctionDecl, entry: Entry) -> list[str]:
        signature = decl.signature
        library = json.dumps(self.library_for(entry.name))
        lines: list[str] = []
        if signature.requires_string_marshalling:
            lines.append(f"[LibraryImport({library}, StringMarshalling = StringMarshalling.Utf8)]")
        else:
            lines.append(f"[LibraryImport({library})]")
        lines.append("[UnmanagedCallConv(CallConvs = [typeof(CallConvCdecl)])]")

        if signature.return_intent == RETURN_STRING:
            owner = self.knowledge.string_owner(entry.name)
            if owner is None or owner == StringOwner.UNKNOWN:
                decl.diagnostics.append(
                    (UNKNOWN_STRING_OWNER, f"{json.dumps(entry.name)}: \"unknown\", // {entry.location}")
                )
            marshaller = CALLER_OWNED_MARSHALLER if owner == StringOwner.CALLER else LIBRARY_OWNED_MARSHALLER
            lines.append(f"[return: MarshalUsing(typeof({marshaller}))]")

        text = f"public static partial {_spell(signature.return_type)} {entry.name}({signature.parameter_list()});"
        if signature.has_unknown_pointer:
            text = f"{text} {UNKNOWN_POINTER_MARKER}"
        lines.extend([text, ""])
        return lines
