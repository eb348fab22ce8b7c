import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from typedrill import typing_display as td  # noqa: E402

RUST_TEXT = "fn f(){ // c\n let a=1;\n}"
RUST_RANGES = [(8, 12)]


class SkipRuleTests(unittest.TestCase):
    def test_comment_characters_are_skipped(self):
        for pos in range(8, 12):
            self.assertTrue(td.should_skip_character(RUST_TEXT, pos, RUST_RANGES), pos)

    def test_whitespace_leading_to_comment_is_skipped(self):
        self.assertTrue(td.should_skip_character(RUST_TEXT, 7, RUST_RANGES))

    def test_code_and_inner_newlines_are_typable(self):
        self.assertFalse(td.should_skip_character(RUST_TEXT, 6, RUST_RANGES))
        self.assertFalse(td.should_skip_character(RUST_TEXT, 12, RUST_RANGES))
        self.assertFalse(td.should_skip_character(RUST_TEXT, 13, RUST_RANGES))

    def test_final_newline_is_skipped(self):
        self.assertTrue(td.should_skip_character("a;\n", 2, []))
        self.assertFalse(td.should_skip_character("a;\nb", 2, []))

    def test_newline_inside_block_comment_is_skipped(self):
        text = "/* a\nb */\nx"
        self.assertTrue(td.should_skip_character(text, 4, [(0, 9)]))
        self.assertFalse(td.should_skip_character(text, 9, [(0, 9)]))

    def test_whitespace_before_code_is_typable(self):
        self.assertFalse(td.should_skip_character("    x = 1", 0, []))

    def test_out_of_range_positions_are_not_skipped(self):
        self.assertFalse(td.should_skip_character("ab", 5, []))
        self.assertFalse(td.should_skip_character("ab", -1, []))


class LineQueryTests(unittest.TestCase):
    def test_end_of_line_content(self):
        self.assertTrue(td.is_at_end_of_line_content(RUST_TEXT, 7, RUST_RANGES))
        self.assertTrue(td.is_at_end_of_line_content(RUST_TEXT, 12, RUST_RANGES))
        self.assertFalse(td.is_at_end_of_line_content(RUST_TEXT, len(RUST_TEXT), RUST_RANGES))
        self.assertFalse(td.TypingDisplay(RUST_TEXT, RUST_RANGES).is_at_end_of_line_content(len(RUST_TEXT)))
        self.assertFalse(td.is_at_end_of_line_content(RUST_TEXT, 6, RUST_RANGES))

    def test_rest_of_line_comment_only(self):
        self.assertTrue(td.is_rest_of_line_comment_only(RUST_TEXT, 7, RUST_RANGES))
        self.assertFalse(td.is_rest_of_line_comment_only(RUST_TEXT, 6, RUST_RANGES))
        self.assertFalse(td.is_rest_of_line_comment_only(RUST_TEXT, 99, RUST_RANGES))


class TypingDisplayTests(unittest.TestCase):
    def test_methods_agree_with_pure_functions(self):
        display = td.TypingDisplay(RUST_TEXT, RUST_RANGES)
        for pos in range(len(RUST_TEXT)):
            self.assertEqual(
                display.should_skip_character(pos),
                td.should_skip_character(RUST_TEXT, pos, RUST_RANGES),
                pos,
            )
            self.assertEqual(
                display.is_at_end_of_line_content(pos),
                td.is_at_end_of_line_content(RUST_TEXT, pos, RUST_RANGES),
                pos,
            )

    def test_next_typable_jumps_over_comment(self):
        display = td.TypingDisplay(RUST_TEXT, RUST_RANGES)
        self.assertEqual(display.next_typable(7), 12)
        self.assertIsNone(td.TypingDisplay("a;\n").next_typable(2))

    def test_typable_positions_exclude_skipped(self):
        display = td.TypingDisplay("a // b\nc", [(2, 6)])
        self.assertEqual(display.typable_positions(), [0, 6, 7])

    def test_display_text_marks_tabs_and_newlines(self):
        display = td.TypingDisplay("\tx\ny")
        self.assertEqual(display.display_text(), td.TAB_DISPLAY + "x" + td.NEWLINE_MARKER + "\ny")
        self.assertEqual(display.display_position(1), len(td.TAB_DISPLAY))

    def test_display_options_can_disable_markers(self):
        options = td.DisplayOptions(add_newline_symbols=False, highlight_special_chars=False)
        display = td.TypingDisplay("\tx\ny", options=options)
        self.assertEqual(display.display_text(), "\tx\ny")

    def test_comment_ranges_follow_inserted_markers(self):
        display = td.TypingDisplay("a; // c\nb", [(3, 7)])
        self.assertEqual(display.display_text(), "a;" + td.NEWLINE_MARKER + " // c\nb")
        ranges = display.display_comment_ranges()
        self.assertEqual(ranges, [(4, 8)])
        s, e = ranges[0]
        self.assertEqual(display.display_text()[s:e], "// c")

    def test_from_source_normalizes_whitespace(self):
        raw = "x = 1   # c   \n\n\ny = 2\n"
        options = td.DisplayOptions(preserve_empty_lines=False)
        display = td.TypingDisplay.from_source(raw, [(8, 11)], options)
        self.assertEqual(display.text, "x = 1   # c\ny = 2")
        self.assertEqual(display.comment_ranges, ((8, 11),))
        for pos in (5, 6, 7):
            self.assertTrue(display.should_skip_character(pos))
        self.assertFalse(display.should_skip_character(11))


if __name__ == "__main__":
    unittest.main(verbosity=2)
