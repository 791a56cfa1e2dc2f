from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from .errors import FfiDeclError


DEFAULT_CONSTANT_PATTERNS = (
    r'#define\s+(?P<name>[A-Za-z_][A-Za-z0-9_]*)\s+"(?P<value>[^"]*)"',
)
DEFAULT_INLINE_PATTERN = (
    r"(?:static\s+inline|SDL_FORCE_INLINE|SDLMAIN_DECLSPEC).*\s+\**(?P<name>[A-Za-z0-9_]+)\(.*\)"
)


def compile_pattern(raw: str, label: str, groups: tuple[str, ...]) -> re.Pattern[str]:
    try:
        pattern = re.compile(raw)
    except re.error as exc:
        raise FfiDeclError(f"Invalid {label} regex pattern '{raw}': {exc}") from exc
    missing = [group for group in groups if group not in pattern.groupindex]
    if missing:
        raise FfiDeclError(f"{label} regex pattern '{raw}' lacks named groups: {', '.join(missing)}")
    return pattern


@dataclass
class HeaderScan:
    path: str
    lines: list[str] = field(default_factory=list)
    constants: list[dict[str, str]] = field(default_factory=list)
    inline_functions: set[str] = field(default_factory=set)


class HeaderScanner:
    def __init__(
        self,
        constant_patterns: Optional[list[str]] = None,
        inline_pattern: Optional[str] = None,
        log: Optional[Callable[[str], None]] = None,
    ) -> None:
        raw_patterns = DEFAULT_CONSTANT_PATTERNS if constant_patterns is None else constant_patterns
        self.constant_patterns = [
            compile_pattern(raw, "constant", ("name", "value")) for raw in raw_patterns
        ]
        self.inline_pattern = compile_pattern(inline_pattern or DEFAULT_INLINE_PATTERN, "inline function", ("name",))
        self._log = log
        self._cache: dict[str, HeaderScan] = {}

    def scan(self, header_path: str) -> HeaderScan:
        cached = self._cache.get(header_path)
        if cached is not None:
            return cached

        scan = HeaderScan(path=header_path, constants=[{} for _ in self.constant_patterns])
        path = Path(header_path)
        if not path.is_file():
            if self._log is not None:
                self._log(f"{header_path}: header not readable, skipping constants")
            self._cache[header_path] = scan
            return scan

        scan.lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
        for line in scan.lines:
            for idx, pattern in enumerate(self.constant_patterns):
                match = pattern.search(line)
                if match:
                    scan.constants[idx][match.group("name")] = match.group("value")
            inline_match = self.inline_pattern.search(line)
            if inline_match:
                scan.inline_functions.add(inline_match.group("name"))

        if self._log is not None:
            total = sum(len(block) for block in scan.constants)
            self._log(f"{header_path}: {total} constants, {len(scan.inline_functions)} inline functions")
        self._cache[header_path] = scan
        return scan


def render_constants(scan: HeaderScan) -> list[str]:
    lines: list[str] = []
    for block in scan.constants:
        if not block:
            continue
        for name, value in block.items():
            lines.append(f'public const string {name} = "{value}";')
        lines.append("")
    return lines


def scan_macro_values(lines: list[str], raw_pattern: str) -> list[tuple[str, str]]:
    pattern = compile_pattern(raw_pattern, "macro enum", ("name", "value"))
    out: list[tuple[str, str]] = []
    for line in lines:
        match = pattern.search(line)
        if match:
            out.append((match.group("name"), match.group("value")))
    return out
