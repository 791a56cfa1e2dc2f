from __future__ import annotations

import json
from typing import Optional

from .ffi_types import Entry
from .headers import scan_macro_values
from .knowledge import KnowledgeTables, MacroEnum
from .resolver import CONTEXT_FIELD, TypeResolver


PLACEHOLDER_RETURN = "WARN_PLACEHOLDER"
UNPOPULATED_MARKER = "// WARN_UNPOPULATED_FLAG_ENUM"


def _underlying(resolver: TypeResolver, entry: Entry) -> Optional[str]:
    if entry.type is None:
        return None
    return resolver.classify(resolver.resolve_fully(entry.type), CONTEXT_FIELD)


def render_enum(resolver: TypeResolver, entry: Entry) -> list[str]:
    underlying = _underlying(resolver, entry)
    header = f"public enum {entry.name}" if underlying is None else f"public enum {entry.name} : {underlying}"
    lines = ["[Flags]"] if resolver.is_flag_type(entry.name) else []
    lines.extend([header, "{"])
    for member in entry.fields:
        lines.append(f"{member.name} = {int(member.value)},")
    lines.extend(["}", ""])
    return lines


def flag_member_lines(members: list[str]) -> list[str]:
    """Assign `1 << index` to members without an explicit value.

    The exponent is the member's position in the list, so reordering the
    list renumbers every implicit member.
    """

    lines: list[str] = []
    for idx, member in enumerate(members):
        if "=" in member:
            lines.append(f"{member},")
        else:
            lines.append(f"{member} = 0x{2 ** idx:X},")
    return lines


def render_flag_enum(
    resolver: TypeResolver,
    knowledge: KnowledgeTables,
    entry: Entry,
) -> tuple[list[str], Optional[str]]:
    underlying = _underlying(resolver, entry) or "uint"
    lines = ["[Flags]", f"public enum {entry.name} : {underlying}", "{"]
    diagnostic = None
    members = knowledge.flag_members(entry.name)
    if members is None:
        diagnostic = f"{json.dumps(entry.name)}: [], // {entry.location}"
        lines.append(UNPOPULATED_MARKER)
    elif not members:
        lines.append(UNPOPULATED_MARKER)
    else:
        lines.extend(flag_member_lines(members))
    lines.extend(["}", ""])
    return lines, diagnostic


def render_delegate(knowledge: KnowledgeTables, entry: Entry) -> tuple[list[str], Optional[str]]:
    definition = knowledge.delegate(entry.name)
    if definition is None:
        placeholder = {"return": PLACEHOLDER_RETURN, "parameters": []}
        return (
            [
                f"// public static delegate RETURN {entry.name}(PARAMS) // WARN_UNDEFINED_FUNCTION_POINTER: {entry.location}",
                "",
            ],
            f"{json.dumps(entry.name)}: {json.dumps(placeholder)}, // {entry.location}",
        )

    params = ", ".join(f"{param_type} {param_name}" for param_type, param_name in definition.parameters)
    decl = f"public delegate {definition.return_type} {entry.name}({params});"
    if definition.return_type == PLACEHOLDER_RETURN:
        return [f"// {decl}", ""], None
    return ["[UnmanagedFunctionPointer(CallingConvention.Cdecl)]", decl, ""], None


def render_macro_enum(
    resolver: TypeResolver,
    entry: Entry,
    macro: MacroEnum,
    header_lines: list[str],
) -> list[str]:
    underlying = _underlying(resolver, entry) or "uint"
    lines = [f"public enum {entry.name} : {underlying}", "{"]
    lines.extend(f"{member}," for member in macro.members)
    for name, value in scan_macro_values(header_lines, macro.pattern):
        lines.append(f"{name} = {value},")
    lines.extend(["}", ""])
    return lines
