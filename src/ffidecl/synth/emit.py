from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from .diagnostics import (
    UNDEFINED_FUNCTION_POINTER,
    UNPOPULATED_FLAG_ENUM,
    UNUSED_KNOWLEDGE,
    Diagnostics,
)
from .enums import render_delegate, render_enum, render_flag_enum, render_macro_enum
from .ffi_types import KIND_FUNCTION_POINTER, Entry
from .ffi_utils import channel_logger
from .headers import HeaderScan, HeaderScanner, render_constants
from .knowledge import KnowledgeTables
from .layout import build_aggregates, render_layout
from .options import GeneratorOptions
from .resolver import TypeResolver
from .scope import ModuleScope, is_library_entry, library_header_names
from .signatures import SignatureSynthesizer


@dataclass
class EmitResult:
    definitions: str
    diagnostics: Diagnostics
    unused: list[str] = field(default_factory=list)
    include_support: bool = True


class DeclarationEmitter:
    """Walks descriptor entries in input order and renders C# declarations.

    Entries are grouped into blocks by header; each new block starts with a
    `// <header path>` comment and the header's string constants. The
    emitter owns ordering and formatting; typing decisions live in the
    resolver, layout and signature modules.
    """

    def __init__(
        self,
        entries: Iterable[Entry],
        knowledge: KnowledgeTables,
        options: Optional[GeneratorOptions] = None,
    ) -> None:
        self.options = options or GeneratorOptions()
        self.knowledge = knowledge
        verbose = self.options.verbose
        self._log_emit = channel_logger(verbose, "emit")

        header_names = library_header_names(self.options.header_root)
        self.entries = [entry for entry in entries if is_library_entry(entry, header_names)]
        self.enum_names = {entry.name for entry in self.entries if entry.tag == "enum" and entry.name}
        self.scope = ModuleScope.build(self.entries, self.options.modules or None, self.options.base)
        scope_log = channel_logger(verbose, "scope")
        if scope_log is not None:
            for module, names in sorted(self.scope.members.items()):
                state = "enabled" if self.scope.modules[module] else "disabled"
                scope_log(f"{module} ({state}): {len(names)} names")

        self.resolver = TypeResolver.from_entries(self.entries, knowledge, self.scope.in_scope)
        self.scanner = HeaderScanner(
            constant_patterns=self.options.constant_patterns,
            inline_pattern=self.options.inline_pattern,
            log=channel_logger(verbose, "headers"),
        )
        self.signatures = SignatureSynthesizer(
            self.resolver,
            knowledge,
            self.options.library_for,
            log=channel_logger(verbose, "signatures"),
        )
        self._log_layout = channel_logger(verbose, "layout")

    @property
    def include_support(self) -> bool:
        base = self.scope.base
        if base is None:
            return True
        return self.scope.modules[base]

    def run(self) -> EmitResult:
        diagnostics = Diagnostics()
        lines: list[str] = []
        current_header: Optional[str] = None
        scan = HeaderScan(path="")
        constants_emitted: set[str] = set()

        for entry in self.entries:
            if self.knowledge.is_denied(entry.name):
                continue
            if not self.scope.is_enabled(entry):
                continue
            if not entry.name:
                if self._log_emit is not None:
                    self._log_emit(f"{entry.location}: unnamed {entry.tag}, skipped")
                continue
            if entry.tag == "function" and entry.inline:
                continue

            if entry.header_path != current_header:
                current_header = entry.header_path
                scan = self.scanner.scan(current_header)
                lines.extend([f"// {current_header}", ""])
                # A header may recur after another one; its constants are emitted once.
                if current_header not in constants_emitted:
                    constants_emitted.add(current_header)
                    lines.extend(render_constants(scan))

            if entry.tag == "enum":
                lines.extend(render_enum(self.resolver, entry))
            elif entry.tag == "typedef":
                lines.extend(self._typedef(entry, scan, diagnostics))
            elif entry.tag in {"struct", "union"}:
                lines.extend(self._aggregate(entry))
            elif entry.tag == "function":
                if entry.name in scan.inline_functions:
                    continue
                decl = self.signatures.synthesize(entry)
                if decl is None:
                    continue
                for category, line in decl.diagnostics:
                    diagnostics.add(category, line)
                lines.extend(decl.lines)

        unused = self.knowledge.unused()
        for item in unused:
            diagnostics.add(UNUSED_KNOWLEDGE, item)
        if self._log_emit is not None:
            for category in diagnostics.non_empty():
                self._log_emit(f"{category}: {len(diagnostics.lines[category])}")

        return EmitResult(
            definitions="\n".join(lines) + "\n",
            diagnostics=diagnostics,
            unused=unused,
            include_support=self.include_support,
        )

    def _typedef(self, entry: Entry, scan: HeaderScan, diagnostics: Diagnostics) -> list[str]:
        if entry.type is not None and entry.type.kind == KIND_FUNCTION_POINTER:
            out, diagnostic = render_delegate(self.knowledge, entry)
            if diagnostic is not None:
                diagnostics.add(UNDEFINED_FUNCTION_POINTER, diagnostic)
            return out

        if entry.name in self.enum_names:
            # `typedef enum X {...} X;` is rendered from the enum entry.
            return []

        macro = self.knowledge.macro_enum(entry.name)
        if macro is not None:
            return render_macro_enum(self.resolver, entry, macro, scan.lines)

        if self.resolver.is_flag_type(entry.name):
            out, diagnostic = render_flag_enum(self.resolver, self.knowledge, entry)
            if diagnostic is not None:
                diagnostics.add(UNPOPULATED_FLAG_ENUM, diagnostic)
            return out

        return []

    def _aggregate(self, entry: Entry) -> list[str]:
        if not entry.fields:
            # Opaque handle; only ever used behind a pointer.
            return []
        out: list[str] = []
        for layout in build_aggregates(self.resolver, entry.name, entry.as_type(), self._log_layout):
            out.extend(render_layout(layout))
        return out
