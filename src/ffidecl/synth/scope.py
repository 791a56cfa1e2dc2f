from __future__ import annotations

from pathlib import Path, PurePath
from typing import Iterable, Optional

from .errors import ScopeError
from .ffi_types import Entry


def library_header_names(header_root: Optional[Path]) -> Optional[set[str]]:
    if header_root is None:
        return None
    root = Path(header_root)
    if not root.is_dir():
        raise ScopeError(f"header root '{root}' is not a directory")
    return {path.name for path in root.rglob("*") if path.is_file()}


def is_library_entry(entry: Entry, header_names: Optional[set[str]]) -> bool:
    if not entry.location:
        return False
    if header_names is None:
        return True
    return entry.header_file in header_names


class ModuleScope:
    """Attributes library entries to feature modules by header stem.

    Entries whose header matches no module land in the base module. The names
    of every attributed entry form the set of in-scope type names; an entry is
    only emitted when its module is enabled.
    """

    def __init__(self, modules: dict[str, bool], base: Optional[str] = None) -> None:
        if not modules:
            raise ScopeError("at least one module must be configured")
        if not any(modules.values()):
            raise ScopeError("at least one module must be enabled")
        if base is not None and base not in modules:
            raise ScopeError(f"base module '{base}' is not one of the configured modules")
        self.modules = dict(modules)
        self.base = base
        self.members: dict[str, set[str]] = {name: set() for name in modules}

    def module_for(self, entry: Entry) -> str:
        stem = PurePath(entry.header_path).stem
        if stem in self.modules:
            return stem
        if self.base is not None:
            return self.base
        raise ScopeError(
            f"'{entry.name or entry.tag}' ({entry.location}) does not belong to any module"
        )

    def add(self, entry: Entry) -> str:
        module = self.module_for(entry)
        if entry.name:
            self.members[module].add(entry.name)
        return module

    def in_scope(self, name: Optional[str]) -> bool:
        if not name:
            return False
        return any(name in names for names in self.members.values())

    def is_enabled(self, entry: Entry) -> bool:
        return self.modules[self.module_for(entry)]

    @classmethod
    def build(
        cls,
        entries: Iterable[Entry],
        modules: Optional[dict[str, bool]] = None,
        base: Optional[str] = None,
    ) -> "ModuleScope":
        if not modules:
            modules = {"core": True}
            base = "core"
        scope = cls(modules, base)
        for entry in entries:
            scope.add(entry)
        return scope
