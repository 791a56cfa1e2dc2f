import os
import sys
import unittest


REPO_ROOT = os.path.dirname(os.path.dirname(__file__))
SRC_ROOT = os.path.join(REPO_ROOT, "src")
sys.path.insert(0, SRC_ROOT)


from ffidecl.synth.enums import (  # noqa: E402
    flag_member_lines,
    render_delegate,
    render_enum,
    render_flag_enum,
    render_macro_enum,
)
from ffidecl.synth.ffi_types import parse_entries  # noqa: E402
from ffidecl.synth.knowledge import DelegateDefinition, KnowledgeTables, MacroEnum  # noqa: E402
from ffidecl.synth.resolver import TypeResolver  # noqa: E402
from ffidecl.synth.scope import ModuleScope  # noqa: E402


LOCATION = "/usr/include/lib/lib_video.h:42:9"

RAW_ENTRIES = [
    {
        "tag": "enum",
        "name": "Orientation",
        "location": LOCATION,
        "fields": [
            {"tag": "field", "name": "ORIENTATION_UNKNOWN", "value": 0},
            {"tag": "field", "name": "ORIENTATION_LANDSCAPE", "value": 1},
            {"tag": "field", "name": "ORIENTATION_ERROR", "value": -1},
        ],
    },
    {"tag": "typedef", "name": "WindowFlags", "location": LOCATION, "type": {"tag": ":unsigned-long-long"}},
    {"tag": "typedef", "name": "Keycode", "location": LOCATION, "type": {"tag": ":unsigned-int"}},
    {"tag": "typedef", "name": "HitTest", "location": LOCATION, "type": {"tag": ":function-pointer"}},
]


class EnumTests(unittest.TestCase):
    def setUp(self) -> None:
        self.entries = {entry.name: entry for entry in parse_entries(RAW_ENTRIES)}

    def _resolver(self, knowledge: KnowledgeTables) -> TypeResolver:
        entries = list(self.entries.values())
        return TypeResolver.from_entries(entries, knowledge, ModuleScope.build(entries).in_scope)

    def test_plain_enum_values_are_verbatim(self) -> None:
        lines = render_enum(self._resolver(KnowledgeTables()), self.entries["Orientation"])
        self.assertEqual(
            lines,
            [
                "public enum Orientation",
                "{",
                "ORIENTATION_UNKNOWN = 0,",
                "ORIENTATION_LANDSCAPE = 1,",
                "ORIENTATION_ERROR = -1,",
                "}",
                "",
            ],
        )

    def test_flag_enum_entry_keeps_values_and_gains_attribute(self) -> None:
        knowledge = KnowledgeTables(flag_types={"Orientation"})
        lines = render_enum(self._resolver(knowledge), self.entries["Orientation"])
        self.assertEqual(lines[:3], ["[Flags]", "public enum Orientation", "{"])
        self.assertIn("ORIENTATION_LANDSCAPE = 1,", lines)

    def test_flag_values_follow_list_position(self) -> None:
        self.assertEqual(
            flag_member_lines(["A", "B", "C = 0x10"]),
            ["A = 0x1,", "B = 0x2,", "C = 0x10,"],
        )
        self.assertEqual(flag_member_lines(["X", "Y = 0", "Z"]), ["X = 0x1,", "Y = 0,", "Z = 0x4,"])

    def test_populated_flag_enum(self) -> None:
        knowledge = KnowledgeTables(flag_enums={"WindowFlags": ["FULLSCREEN", "OPENGL", "HIDDEN = 0x8"]})
        lines, diagnostic = render_flag_enum(self._resolver(knowledge), knowledge, self.entries["WindowFlags"])

        self.assertIsNone(diagnostic)
        self.assertEqual(
            lines,
            [
                "[Flags]",
                "public enum WindowFlags : ulong",
                "{",
                "FULLSCREEN = 0x1,",
                "OPENGL = 0x2,",
                "HIDDEN = 0x8,",
                "}",
                "",
            ],
        )
        self.assertEqual(knowledge.unused(), [])

    def test_missing_flag_enum_is_reported(self) -> None:
        knowledge = KnowledgeTables()
        lines, diagnostic = render_flag_enum(self._resolver(knowledge), knowledge, self.entries["WindowFlags"])

        self.assertIn("// WARN_UNPOPULATED_FLAG_ENUM", lines)
        self.assertEqual(diagnostic, f'"WindowFlags": [], // {LOCATION}')

    def test_empty_flag_enum_is_silent(self) -> None:
        knowledge = KnowledgeTables(flag_enums={"WindowFlags": []})
        lines, diagnostic = render_flag_enum(self._resolver(knowledge), knowledge, self.entries["WindowFlags"])

        self.assertIn("// WARN_UNPOPULATED_FLAG_ENUM", lines)
        self.assertIsNone(diagnostic)
        self.assertEqual(knowledge.unused(), [])

    def test_delegate_definition(self) -> None:
        knowledge = KnowledgeTables(
            delegates={
                "HitTest": DelegateDefinition(
                    return_type="int",
                    parameters=[("IntPtr", "win"), ("Point*", "area"), ("IntPtr", "data")],
                )
            }
        )
        lines, diagnostic = render_delegate(knowledge, self.entries["HitTest"])

        self.assertIsNone(diagnostic)
        self.assertEqual(
            lines,
            [
                "[UnmanagedFunctionPointer(CallingConvention.Cdecl)]",
                "public delegate int HitTest(IntPtr win, Point* area, IntPtr data);",
                "",
            ],
        )

    def test_placeholder_delegate_is_commented_out(self) -> None:
        knowledge = KnowledgeTables(delegates={"HitTest": DelegateDefinition("WARN_PLACEHOLDER", [])})
        lines, diagnostic = render_delegate(knowledge, self.entries["HitTest"])

        self.assertIsNone(diagnostic)
        self.assertEqual(lines, ["// public delegate WARN_PLACEHOLDER HitTest();", ""])

    def test_undefined_delegate_is_reported(self) -> None:
        lines, diagnostic = render_delegate(KnowledgeTables(), self.entries["HitTest"])

        self.assertTrue(lines[0].startswith("// public static delegate RETURN HitTest(PARAMS)"))
        self.assertIn("WARN_UNDEFINED_FUNCTION_POINTER", lines[0])
        self.assertEqual(
            diagnostic,
            f'"HitTest": {{"return": "WARN_PLACEHOLDER", "parameters": []}}, // {LOCATION}',
        )

    def test_macro_enum_collects_defines(self) -> None:
        header_lines = [
            "#define KEY_SCANCODE_MASK (1u<<30)",
            "#define KEY_RETURN 0x0000000du /**< '\\r' */",
            "#define KEY_ESCAPE 0x0000001bu",
            "int unrelated;",
        ]
        macro = MacroEnum(
            pattern=r"#define\s+(?P<name>KEY_[A-Z0-9_]+)\s+(?P<value>0x[0-9a-fA-F]+)u",
            members=["KEY_SCANCODE_MASK = 0x40000000"],
        )
        lines = render_macro_enum(
            self._resolver(KnowledgeTables()), self.entries["Keycode"], macro, header_lines
        )
        self.assertEqual(
            lines,
            [
                "public enum Keycode : uint",
                "{",
                "KEY_SCANCODE_MASK = 0x40000000,",
                "KEY_RETURN = 0x0000000d,",
                "KEY_ESCAPE = 0x0000001b,",
                "}",
                "",
            ],
        )


if __name__ == "__main__":
    unittest.main()
