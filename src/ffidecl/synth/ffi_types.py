from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Any, Optional

from .errors import DescriptorError


KIND_PRIMITIVE = "primitive"
KIND_POINTER = "pointer"
KIND_STRUCT = "struct"
KIND_UNION = "union"
KIND_ENUM = "enum"
KIND_FUNCTION_POINTER = "function-pointer"
KIND_ARRAY = "array"
KIND_TYPEDEF = "typedef"


# Tags that carry their own structure; every other non-primitive tag names a typedef.
STRUCTURAL_TAGS = {
    KIND_POINTER,
    KIND_STRUCT,
    KIND_UNION,
    KIND_ENUM,
    KIND_FUNCTION_POINTER,
    KIND_ARRAY,
}

PRIMITIVE_TAGS = {
    "void",
    "_Bool",
    "bool",
    "char",
    "signed-char",
    "unsigned-char",
    "short",
    "unsigned-short",
    "int",
    "unsigned-int",
    "long",
    "unsigned-long",
    "long-long",
    "unsigned-long-long",
    "float",
    "double",
    "long-double",
}


def _strip_tag(tag: str) -> str:
    # c2ffi spells builtin tags with a leading colon (":pointer", ":int").
    return tag[1:] if tag.startswith(":") else tag


@dataclass
class FFIType:
    tag: str
    name: Optional[str] = None
    type: Optional["FFIType"] = None
    fields: list["Field"] = field(default_factory=list)
    size: Optional[int] = None
    bit_offset: Optional[int] = None
    bit_size: Optional[int] = None

    @property
    def kind(self) -> str:
        if self.tag in STRUCTURAL_TAGS:
            return self.tag
        if self.tag in PRIMITIVE_TAGS:
            return KIND_PRIMITIVE
        return KIND_TYPEDEF


@dataclass
class Field:
    name: str
    type: Optional[FFIType] = None
    bit_offset: Optional[int] = None
    bit_size: Optional[int] = None
    value: Optional[int] = None


@dataclass
class Param:
    name: str
    type: FFIType


@dataclass
class Entry:
    tag: str
    name: str
    location: str = ""
    type: Optional[FFIType] = None
    fields: list[Field] = field(default_factory=list)
    parameters: list[Param] = field(default_factory=list)
    return_type: Optional[FFIType] = None
    variadic: bool = False
    inline: bool = False
    bit_size: Optional[int] = None

    @property
    def header_path(self) -> str:
        return self.location.split(":")[0]

    @property
    def header_file(self) -> str:
        return PurePath(self.header_path).name

    def as_type(self) -> FFIType:
        return FFIType(tag=self.tag, name=self.name, fields=self.fields, bit_size=self.bit_size)


def _require(raw: dict[str, Any], key: str, label: str) -> Any:
    if key not in raw:
        raise DescriptorError(f"{label} is missing required key '{key}'")
    return raw[key]


def parse_type(raw: Any, label: str = "type") -> FFIType:
    if not isinstance(raw, dict):
        raise DescriptorError(f"{label} must be an object")
    tag = _require(raw, "tag", label)
    if not isinstance(tag, str) or not tag:
        raise DescriptorError(f"{label}.tag must be a non-empty string")
    type_ref = FFIType(
        tag=_strip_tag(tag),
        name=raw.get("name"),
        size=raw.get("size"),
        bit_offset=raw.get("bit-offset"),
        bit_size=raw.get("bit-size"),
    )
    if raw.get("type") is not None:
        type_ref.type = parse_type(raw["type"], f"{label}.type")
    for idx, raw_field in enumerate(raw.get("fields") or []):
        type_ref.fields.append(_parse_field(raw_field, f"{label}.fields[{idx}]", aggregate=True))
    return type_ref


def _parse_field(raw: Any, label: str, aggregate: bool) -> Field:
    if not isinstance(raw, dict):
        raise DescriptorError(f"{label} must be an object")
    name = raw.get("name") or ""
    if not aggregate:
        return Field(name=name, value=_require(raw, "value", label))
    return Field(
        name=name,
        type=parse_type(_require(raw, "type", label), f"{label}.type"),
        bit_offset=_require(raw, "bit-offset", label),
        bit_size=raw.get("bit-size"),
    )


def parse_entry(raw: Any, index: int = 0) -> Entry:
    label = f"entry[{index}]"
    if not isinstance(raw, dict):
        raise DescriptorError(f"{label} must be an object")
    tag = _strip_tag(str(_require(raw, "tag", label)))
    name = raw.get("name") or ""
    label = f"{label} ({tag} {name})" if name else label
    entry = Entry(
        tag=tag,
        name=name,
        location=raw.get("location") or "",
        variadic=bool(raw.get("variadic", False)),
        inline=bool(raw.get("inline", False)),
        bit_size=raw.get("bit-size"),
    )
    if tag == "function":
        entry.return_type = parse_type(_require(raw, "return-type", label), f"{label}.return-type")
        for idx, raw_param in enumerate(_require(raw, "parameters", label)):
            if not isinstance(raw_param, dict):
                raise DescriptorError(f"{label}.parameters[{idx}] must be an object")
            entry.parameters.append(
                Param(
                    name=raw_param.get("name") or "",
                    type=parse_type(_require(raw_param, "type", label), f"{label}.parameters[{idx}].type"),
                )
            )
    elif tag in {"struct", "union"}:
        for idx, raw_field in enumerate(_require(raw, "fields", label)):
            entry.fields.append(_parse_field(raw_field, f"{label}.fields[{idx}]", aggregate=True))
    elif tag == "enum":
        for idx, raw_field in enumerate(_require(raw, "fields", label)):
            entry.fields.append(_parse_field(raw_field, f"{label}.fields[{idx}]", aggregate=False))
        if raw.get("type") is not None:
            entry.type = parse_type(raw["type"], f"{label}.type")
    elif tag == "typedef":
        entry.type = parse_type(_require(raw, "type", label), f"{label}.type")
    return entry


def parse_entries(payload: Any) -> list[Entry]:
    if not isinstance(payload, list):
        raise DescriptorError("descriptor root must be an array of entries")
    return [parse_entry(raw, idx) for idx, raw in enumerate(payload)]
