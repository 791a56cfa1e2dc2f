from __future__ import annotations

from dataclasses import dataclass, field


UNKNOWN_POINTER = "unknown_pointer_parameters"
UNKNOWN_STRING_OWNER = "unknown_string_owners"
MISSING_COUNT_PARAM = "missing_array_count_params"
UNDEFINED_FUNCTION_POINTER = "undefined_function_pointers"
UNPOPULATED_FLAG_ENUM = "unpopulated_flag_enums"
UNUSED_KNOWLEDGE = "unused_knowledge_entries"

CATEGORIES = (
    UNKNOWN_POINTER,
    UNKNOWN_STRING_OWNER,
    MISSING_COUNT_PARAM,
    UNDEFINED_FUNCTION_POINTER,
    UNPOPULATED_FLAG_ENUM,
    UNUSED_KNOWLEDGE,
)

REPORT_HEADERS = {
    UNKNOWN_POINTER: "new pointer parameters (add these to `pointer_intents` in the knowledge file):",
    UNKNOWN_STRING_OWNER: "new returned char pointers (add these to `string_owners` in the knowledge file):",
    MISSING_COUNT_PARAM: (
        "new returned arrays (add these to `array_count_params` in the knowledge file "
        "and name the parameter that receives the element count):"
    ),
    UNDEFINED_FUNCTION_POINTER: "new undefined function pointers (add these to `delegates` in the knowledge file):",
    UNPOPULATED_FLAG_ENUM: "new unpopulated flag enums (add these to `flag_enums` in the knowledge file):",
    UNUSED_KNOWLEDGE: "knowledge entries never consulted during this run (remove or fix these):",
}


@dataclass
class Diagnostics:
    lines: dict[str, list[str]] = field(default_factory=lambda: {category: [] for category in CATEGORIES})

    def add(self, category: str, line: str) -> None:
        if category not in self.lines:
            raise KeyError(f"unknown diagnostic category: {category}")
        self.lines[category].append(line)

    def get(self, category: str) -> list[str]:
        return list(self.lines.get(category, []))

    def non_empty(self) -> list[str]:
        return [category for category in CATEGORIES if self.lines[category]]

    def render(self, category: str) -> str:
        body = "\n".join(self.lines[category])
        return f"{REPORT_HEADERS[category]}\n{body}\n"
