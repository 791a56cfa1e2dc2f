"""Hand-curated knowledge tables consulted during synthesis.

Every table remembers which of its keys were looked up, so that entries that
were never consulted during a run can be reported as stale configuration.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .errors import KnowledgeError


RETURN_KEY = "__return"

DEFAULT_RESERVED_RENAMES = {"checked": "check"}


class PointerIntent(Enum):
    UNKNOWN = "unknown"
    HANDLE = "handle"
    REF = "ref"
    IN = "in"
    OUT = "out"
    ARRAY = "array"
    OUT_ARRAY = "out_array"
    POINTER = "pointer"


class StringOwner(Enum):
    UNKNOWN = "unknown"
    LIBRARY = "library"
    CALLER = "caller"


@dataclass
class DelegateDefinition:
    return_type: str
    parameters: list[tuple[str, str]]


@dataclass
class MacroEnum:
    pattern: str
    members: list[str]


# Tables whose keys take part in the unused-entry report.
TRACKED_TABLES = (
    "pointer_intents",
    "string_owners",
    "array_count_params",
    "delegates",
    "flag_enums",
    "macro_enums",
)


class KnowledgeTables:
    def __init__(
        self,
        pointer_intents: Optional[dict[tuple[str, str], PointerIntent]] = None,
        string_owners: Optional[dict[str, StringOwner]] = None,
        array_count_params: Optional[dict[str, str]] = None,
        delegates: Optional[dict[str, DelegateDefinition]] = None,
        flag_enums: Optional[dict[str, list[str]]] = None,
        macro_enums: Optional[dict[str, MacroEnum]] = None,
        flag_types: Optional[set[str]] = None,
        denied: Optional[set[str]] = None,
        reserved_renames: Optional[dict[str, str]] = None,
        type_map: Optional[dict[str, str]] = None,
        opaque_callbacks: Optional[set[str]] = None,
    ) -> None:
        self.pointer_intents = dict(pointer_intents or {})
        self.string_owners = dict(string_owners or {})
        self.array_count_params = dict(array_count_params or {})
        self.delegates = dict(delegates or {})
        self.flag_enums = dict(flag_enums or {})
        self.macro_enums = dict(macro_enums or {})
        self.flag_types = set(flag_types or set())
        self.denied = set(denied or set())
        self.reserved_renames = dict(DEFAULT_RESERVED_RENAMES if reserved_renames is None else reserved_renames)
        self.type_map = dict(type_map or {})
        self.opaque_callbacks = set(opaque_callbacks or set())
        self._consumed: set[tuple[str, Any]] = set()

    def _lookup(self, table: str, key: Any):
        value = getattr(self, table).get(key)
        if value is not None:
            self._consumed.add((table, key))
        return value

    def pointer_intent(self, function: str, component: str) -> Optional[PointerIntent]:
        return self._lookup("pointer_intents", (function, component))

    def string_owner(self, function: str) -> Optional[StringOwner]:
        return self._lookup("string_owners", function)

    def array_count_param(self, function: str) -> Optional[str]:
        return self._lookup("array_count_params", function)

    def delegate(self, name: str) -> Optional[DelegateDefinition]:
        return self._lookup("delegates", name)

    def flag_members(self, name: str) -> Optional[list[str]]:
        return self._lookup("flag_enums", name)

    def macro_enum(self, name: str) -> Optional[MacroEnum]:
        return self._lookup("macro_enums", name)

    def is_flag_type(self, name: Optional[str]) -> bool:
        if not name:
            return False
        return name.endswith("Flags") or name in self.flag_types

    def is_denied(self, name: str) -> bool:
        return name in self.denied

    def rename(self, name: str) -> str:
        return self.reserved_renames.get(name, name)

    def unused(self) -> list[str]:
        out: list[str] = []
        for table in TRACKED_TABLES:
            for key in getattr(self, table):
                if (table, key) in self._consumed:
                    continue
                label = ":".join(key) if isinstance(key, tuple) else key
                out.append(f"{table}: {label}")
        return sorted(out)

    @classmethod
    def from_json(cls, payload: dict[str, Any]) -> "KnowledgeTables":
        if not isinstance(payload, dict):
            raise KnowledgeError("knowledge root must be an object")

        pointer_intents: dict[tuple[str, str], PointerIntent] = {}
        for function, params in (payload.get("pointer_intents") or {}).items():
            if not isinstance(params, dict):
                raise KnowledgeError(f"pointer_intents['{function}'] must be an object")
            for param, raw in params.items():
                pointer_intents[(function, param)] = _enum_value(
                    PointerIntent, raw, f"pointer_intents['{function}']['{param}']"
                )

        string_owners = {
            function: _enum_value(StringOwner, raw, f"string_owners['{function}']")
            for function, raw in (payload.get("string_owners") or {}).items()
        }

        delegates: dict[str, DelegateDefinition] = {}
        for name, raw in (payload.get("delegates") or {}).items():
            if not isinstance(raw, dict) or not isinstance(raw.get("return"), str):
                raise KnowledgeError(f"delegates['{name}'] must be an object with a string 'return'")
            params: list[tuple[str, str]] = []
            for item in raw.get("parameters") or []:
                if not isinstance(item, list) or len(item) != 2:
                    raise KnowledgeError(f"delegates['{name}'].parameters entries must be [type, name] pairs")
                params.append((str(item[0]), str(item[1])))
            delegates[name] = DelegateDefinition(return_type=raw["return"], parameters=params)

        macro_enums: dict[str, MacroEnum] = {}
        for name, raw in (payload.get("macro_enums") or {}).items():
            if not isinstance(raw, dict) or not isinstance(raw.get("pattern"), str):
                raise KnowledgeError(f"macro_enums['{name}'] must be an object with a string 'pattern'")
            macro_enums[name] = MacroEnum(pattern=raw["pattern"], members=list(raw.get("members") or []))

        return cls(
            pointer_intents=pointer_intents,
            string_owners=string_owners,
            array_count_params=dict(payload.get("array_count_params") or {}),
            delegates=delegates,
            flag_enums={name: list(members) for name, members in (payload.get("flag_enums") or {}).items()},
            macro_enums=macro_enums,
            flag_types=set(payload.get("flag_types") or []),
            denied=set(payload.get("denied") or []),
            reserved_renames=payload.get("reserved_renames"),
            type_map=dict(payload.get("type_map") or {}),
            opaque_callbacks=set(payload.get("opaque_callbacks") or []),
        )


def _enum_value(enum_cls, raw: Any, label: str):
    try:
        return enum_cls(raw)
    except ValueError as exc:
        allowed = ", ".join(item.value for item in enum_cls)
        raise KnowledgeError(f"{label}: '{raw}' is not one of {allowed}") from exc
