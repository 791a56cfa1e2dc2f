import contextlib
import io
import os
import sys
import unittest


REPO_ROOT = os.path.dirname(os.path.dirname(__file__))
SRC_ROOT = os.path.join(REPO_ROOT, "src")
sys.path.insert(0, SRC_ROOT)


from ffidecl.synth.errors import KnowledgeError  # noqa: E402
from ffidecl.synth.ffi_utils import channel_logger, parse_csv_set, sanitize_name, warn  # noqa: E402
from ffidecl.synth.knowledge import KnowledgeTables, PointerIntent, StringOwner  # noqa: E402


PAYLOAD = {
    "pointer_intents": {"GetWindowSize": {"w": "out", "h": "out"}},
    "string_owners": {"GetError": "library"},
    "array_count_params": {"GetDisplays": "count"},
    "delegates": {"TimerCallback": {"return": "uint", "parameters": [["IntPtr", "userdata"], ["uint", "interval"]]}},
    "flag_enums": {"InitFlags": ["AUDIO", "VIDEO"]},
    "macro_enums": {"Keycode": {"pattern": "(?P<name>K_\\w+) (?P<value>\\d+)", "members": []}},
    "flag_types": ["Keymod"],
    "denied": ["SetWindowsMessageHook"],
    "type_map": {"GLenum": "uint"},
}


class KnowledgeTablesTests(unittest.TestCase):
    def test_from_json_parses_every_table(self) -> None:
        tables = KnowledgeTables.from_json(PAYLOAD)

        self.assertEqual(tables.pointer_intent("GetWindowSize", "w"), PointerIntent.OUT)
        self.assertEqual(tables.string_owner("GetError"), StringOwner.LIBRARY)
        self.assertEqual(tables.array_count_param("GetDisplays"), "count")
        delegate = tables.delegate("TimerCallback")
        self.assertEqual(delegate.return_type, "uint")
        self.assertEqual(delegate.parameters, [("IntPtr", "userdata"), ("uint", "interval")])
        self.assertEqual(tables.flag_members("InitFlags"), ["AUDIO", "VIDEO"])
        self.assertEqual(tables.macro_enum("Keycode").members, [])
        self.assertTrue(tables.is_denied("SetWindowsMessageHook"))
        self.assertEqual(tables.type_map, {"GLenum": "uint"})

    def test_unused_lists_keys_never_looked_up(self) -> None:
        tables = KnowledgeTables.from_json(PAYLOAD)
        tables.pointer_intent("GetWindowSize", "w")
        tables.string_owner("GetError")
        tables.delegate("NotThere")

        self.assertEqual(
            tables.unused(),
            [
                "array_count_params: GetDisplays",
                "delegates: TimerCallback",
                "flag_enums: InitFlags",
                "macro_enums: Keycode",
                "pointer_intents: GetWindowSize:h",
            ],
        )

    def test_flag_types_by_suffix_or_listing(self) -> None:
        tables = KnowledgeTables.from_json(PAYLOAD)
        self.assertTrue(tables.is_flag_type("WindowFlags"))
        self.assertTrue(tables.is_flag_type("Keymod"))
        self.assertFalse(tables.is_flag_type("Keycode"))
        self.assertFalse(tables.is_flag_type(None))

    def test_invalid_intent_is_rejected(self) -> None:
        with self.assertRaises(KnowledgeError) as ctx:
            KnowledgeTables.from_json({"pointer_intents": {"Foo": {"bar": "borrowed"}}})
        self.assertIn("pointer_intents['Foo']['bar']", str(ctx.exception))

    def test_invalid_owner_is_rejected(self) -> None:
        with self.assertRaises(KnowledgeError):
            KnowledgeTables.from_json({"string_owners": {"Foo": "kernel"}})

    def test_default_reserved_renames(self) -> None:
        tables = KnowledgeTables()
        self.assertEqual(tables.rename("checked"), "check")
        self.assertEqual(tables.rename("value"), "value")
        custom = KnowledgeTables.from_json({"reserved_renames": {"default": "fallback"}})
        self.assertEqual(custom.rename("checked"), "checked")
        self.assertEqual(custom.rename("default"), "fallback")


class UtilsTests(unittest.TestCase):
    def test_sanitize_name(self) -> None:
        self.assertEqual(sanitize_name(""), "_")
        self.assertEqual(sanitize_name("string"), "@string")
        self.assertEqual(sanitize_name("out"), "@out")
        self.assertEqual(sanitize_name("width"), "width")

    def test_parse_csv_set(self) -> None:
        self.assertEqual(parse_csv_set(" layout, ,emit,"), {"layout", "emit"})
        self.assertEqual(parse_csv_set(""), set())

    def test_channel_logger_is_gated_by_verbose_set(self) -> None:
        self.assertIsNone(channel_logger(set(), "layout"))
        self.assertIsNone(channel_logger({"emit"}, "layout"))

        stderr = io.StringIO()
        with contextlib.redirect_stderr(stderr):
            channel_logger({"layout"}, "layout")("Event.anonymous1: hoisted")
            channel_logger({"all"}, "scope")("core (enabled): 3 names")
            warn("GetRects: intent 'ref' unsupported for return types; falling back to IntPtr")

        self.assertEqual(
            stderr.getvalue().splitlines(),
            [
                "[ffidecl:layout] Event.anonymous1: hoisted",
                "[ffidecl:scope] core (enabled): 3 names",
                "[ffidecl:warn] GetRects: intent 'ref' unsupported for return types; falling back to IntPtr",
            ],
        )


if __name__ == "__main__":
    unittest.main()
