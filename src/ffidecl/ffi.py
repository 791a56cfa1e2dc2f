from __future__ import annotations

import json
import shlex
import subprocess
import sys
from pathlib import Path
from typing import Any, Optional, TextIO

import jsonschema

from .synth.diagnostics import Diagnostics
from .synth.emit import DeclarationEmitter, EmitResult
from .synth.errors import DescriptorError, FfiDeclError, KnowledgeError
from .synth.ffi_types import Entry, parse_entries
from .synth.knowledge import KnowledgeTables
from .synth.options import GeneratorOptions
from .synth.prologue import render_bindings


def load_json(path: Path) -> Any:
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise FfiDeclError(f"Unable to read JSON file '{path}': {exc}") from exc
    except json.JSONDecodeError as exc:
        raise FfiDeclError(f"Invalid JSON in '{path}': {exc}") from exc


def get_schema_path(kind: str) -> Path:
    base = Path(__file__).resolve().parent / "schemas"
    mapping = {
        "descriptor": base / "descriptor.schema.json",
        "knowledge": base / "knowledge.schema.json",
    }
    if kind not in mapping:
        raise FfiDeclError(f"Unknown schema kind: {kind}")
    return mapping[kind]


def validate(kind: str, payload: Any, error_cls: type[FfiDeclError], label: str) -> None:
    schema = load_json(get_schema_path(kind))
    try:
        jsonschema.validate(payload, schema)
    except jsonschema.ValidationError as exc:
        where = "/".join(str(part) for part in exc.absolute_path) or "<root>"
        raise error_cls(f"{label} failed {kind} schema validation at {where}: {exc.message}") from exc


def load_descriptors(path: Path) -> list[Entry]:
    payload = load_json(path)
    validate("descriptor", payload, DescriptorError, str(path))
    return parse_entries(payload)


def load_knowledge(path: Optional[Path]) -> KnowledgeTables:
    if path is None:
        return KnowledgeTables()
    payload = load_json(path)
    validate("knowledge", payload, KnowledgeError, str(path))
    return KnowledgeTables.from_json(payload)


def generate_bindings(
    entries: list[Entry],
    knowledge: KnowledgeTables,
    options: Optional[GeneratorOptions] = None,
) -> tuple[str, EmitResult]:
    options = options or GeneratorOptions()
    result = DeclarationEmitter(entries, knowledge, options).run()
    text = render_bindings(
        result.definitions,
        namespace=options.namespace,
        class_name=options.class_name,
        include_support=result.include_support,
        free_function=options.free_function,
    )
    return text, result


def write_output(path: Path, text: str) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def write_reports(directory: Path, diagnostics: Diagnostics) -> list[Path]:
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []
    for category in diagnostics.non_empty():
        report = directory / f"{category}.txt"
        report.write_text(diagnostics.render(category), encoding="utf-8")
        written.append(report)
    return written


def run_formatter(command: str, path: Path) -> None:
    argv = shlex.split(command) + [str(path)]
    try:
        subprocess.run(argv, check=True, capture_output=True, text=True)
    except FileNotFoundError as exc:
        raise FfiDeclError(f"formatter '{argv[0]}' not found") from exc
    except subprocess.CalledProcessError as exc:
        detail = (exc.stderr or exc.stdout or "").strip()
        raise FfiDeclError(f"formatter `{' '.join(argv)}` failed with exit code {exc.returncode}: {detail}") from exc


def dump_scope(
    entries: list[Entry],
    knowledge: KnowledgeTables,
    options: Optional[GeneratorOptions] = None,
    stream: TextIO = sys.stdout,
) -> None:
    emitter = DeclarationEmitter(entries, knowledge, options)
    for module, names in sorted(emitter.scope.members.items()):
        print(f"==== {module} ====", file=stream)
        for name in sorted(names):
            print(name, file=stream)
        print("", file=stream)
    print("==== typedef map ====", file=stream)
    for name in sorted(emitter.resolver.typedefs):
        print(name, file=stream)
