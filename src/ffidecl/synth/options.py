from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .errors import FfiDeclError


DEFAULT_LIBRARY = "native"
DEFAULT_NAMESPACE = "Native"
DEFAULT_CLASS_NAME = "NativeMethods"


@dataclass
class GeneratorOptions:
    modules: dict[str, bool] = field(default_factory=dict)
    base: Optional[str] = None
    header_root: Optional[Path] = None
    library: str = DEFAULT_LIBRARY
    library_prefixes: dict[str, str] = field(default_factory=dict)
    namespace: str = DEFAULT_NAMESPACE
    class_name: str = DEFAULT_CLASS_NAME
    free_function: str = "free"
    constant_patterns: Optional[list[str]] = None
    inline_pattern: Optional[str] = None
    verbose: set[str] = field(default_factory=set)

    def library_for(self, function_name: str) -> str:
        # Longest prefix wins so that `TTF_` beats a catch-all `T`.
        best = ""
        library = self.library
        for prefix, name in self.library_prefixes.items():
            if function_name.startswith(prefix) and len(prefix) > len(best):
                best = prefix
                library = name
        return library


def parse_assignment(raw: str, label: str) -> tuple[str, str]:
    key, sep, value = raw.partition("=")
    key = key.strip()
    value = value.strip()
    if not sep or not key or not value:
        raise FfiDeclError(f"{label} expects KEY=VALUE, got '{raw}'")
    return key, value


def parse_bool(raw: str, label: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise FfiDeclError(f"{label}: '{raw}' is not a boolean")


def parse_modules(items: list[str]) -> dict[str, bool]:
    modules: dict[str, bool] = {}
    for raw in items:
        name, value = parse_assignment(raw, "--module")
        modules[name] = parse_bool(value, f"--module {name}")
    return modules


def parse_library_prefixes(items: list[str]) -> dict[str, str]:
    return dict(parse_assignment(raw, "--library-prefix") for raw in items)
