"""
Unit tests for query literal escaping and the UTF-16 hex codec.
"""

from __future__ import annotations

import unittest

from generic_logger_table import escape, from_hex_string, to_hex_string, unescape


class EscapingTest(unittest.TestCase):
    def test_escape_doubles_every_quote(self) -> None:
        self.assertEqual("it''s", escape("it's"))
        self.assertEqual("''''", escape("''"))
        self.assertEqual("no quotes", escape("no quotes"))

    def test_unescape_restores_escaped_text(self) -> None:
        for text in ("it's", "''", "'a''b'''", "", "plain"):
            self.assertEqual(text, unescape(escape(text)))

    def test_none_passes_through(self) -> None:
        self.assertIsNone(escape(None))
        self.assertIsNone(unescape(None))


class HexCodecTest(unittest.TestCase):
    def test_ascii_text_uses_utf16_little_endian_code_units(self) -> None:
        self.assertEqual("41004200", to_hex_string("AB"))
        self.assertEqual("AB", from_hex_string("41004200"))

    def test_non_ascii_text_survives(self) -> None:
        text = "Grüße ☃ 日本"
        encoded = to_hex_string(text)
        self.assertIsNotNone(encoded)
        self.assertRegex(encoded or "", r"^[0-9A-F]+$")
        self.assertEqual(text, from_hex_string(encoded))

    def test_surrogate_pairs_survive(self) -> None:
        text = "emoji \U0001F600"
        self.assertEqual(text, from_hex_string(to_hex_string(text)))

    def test_lowercase_hex_is_accepted(self) -> None:
        self.assertEqual("AB", from_hex_string("41004200".lower()))

    def test_empty_and_none_give_none(self) -> None:
        self.assertIsNone(to_hex_string(""))
        self.assertIsNone(to_hex_string(None))
        self.assertIsNone(from_hex_string(""))
        self.assertIsNone(from_hex_string(None))

    def test_text_that_is_not_hex_is_returned_unchanged(self) -> None:
        self.assertEqual("hello", from_hex_string("hello"))
        self.assertEqual("410", from_hex_string("410"))
        self.assertEqual("4100ZZ00", from_hex_string("4100ZZ00"))


if __name__ == "__main__":
    unittest.main()
