from __future__ import annotations

import sys
from typing import Callable, Optional


# C# keywords that are legal C identifiers. `checked` is left to reserved_renames.
KEYWORD_NAMES = {
    "abstract",
    "as",
    "base",
    "byte",
    "catch",
    "class",
    "decimal",
    "delegate",
    "event",
    "explicit",
    "finally",
    "fixed",
    "foreach",
    "implicit",
    "in",
    "interface",
    "internal",
    "is",
    "lock",
    "namespace",
    "new",
    "null",
    "object",
    "operator",
    "out",
    "override",
    "params",
    "private",
    "protected",
    "public",
    "readonly",
    "ref",
    "sbyte",
    "sealed",
    "stackalloc",
    "string",
    "this",
    "throw",
    "try",
    "typeof",
    "uint",
    "ulong",
    "unchecked",
    "unsafe",
    "ushort",
    "using",
    "virtual",
}


def sanitize_name(name: str) -> str:
    if not name:
        return "_"
    if name in KEYWORD_NAMES:
        return f"@{name}"
    return name


def channel_logger(verbose: Optional[set[str]], channel: str) -> Optional[Callable[[str], None]]:
    if not verbose or (channel not in verbose and "all" not in verbose):
        return None

    def _log(msg: str, *, _channel: str = channel) -> None:
        print(f"[ffidecl:{_channel}] {msg}", file=sys.stderr)

    return _log


def warn(msg: str) -> None:
    print(f"[ffidecl:warn] {msg}", file=sys.stderr)


def parse_csv_set(value: str) -> set[str]:
    return {item.strip() for item in value.split(",") if item.strip()}
