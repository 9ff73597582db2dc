"""
Tests for quote-aware segmentation.
"""

import unittest

from safebash.core.tokenizer import Segment, segment


def tokens_of(raw):
    return [s.tokens for s in segment(raw)]


class TestSegmentation(unittest.TestCase):
    """Splitting on control operators."""

    def test_compound_command(self):
        self.assertEqual(tokens_of("ls && rm file.txt"), [("ls",), ("rm", "file.txt")])

    def test_all_separators(self):
        self.assertEqual(
            tokens_of("a; b | c || d & e |& f"),
            [("a",), ("b",), ("c",), ("d",), ("e",), ("f",)],
        )

    def test_subshell_parentheses(self):
        self.assertEqual(tokens_of("(cd dir && ls)"), [("cd", "dir"), ("ls",)])

    def test_extra_whitespace(self):
        self.assertEqual(tokens_of("  rm   -rf   dir/  "), [("rm", "-rf", "dir/")])

    def test_empty_and_comment_input(self):
        self.assertEqual(segment(""), [])
        self.assertEqual(segment("   "), [])
        self.assertEqual(segment("# this is a comment"), [])

    def test_mid_line_comment(self):
        self.assertEqual(tokens_of("ls -la # && rm x"), [("ls", "-la")])

    def test_hash_inside_word_is_literal(self):
        self.assertEqual(tokens_of("echo foo#bar"), [("echo", "foo#bar")])

    def test_non_string_raises(self):
        with self.assertRaises(TypeError):
            segment(None)
        with self.assertRaises(TypeError):
            segment(b"ls")


class TestQuoting(unittest.TestCase):

    def test_quoted_operators_stay_in_word(self):
        self.assertEqual(
            tokens_of("echo 'a;b' \"c && d\""),
            [("echo", "a;b", "c && d")],
        )

    def test_adjacent_quotes_join(self):
        self.assertEqual(tokens_of('r"m" file'), [("rm", "file")])

    def test_empty_quotes_are_a_token(self):
        self.assertEqual(tokens_of("grep '' file"), [("grep", "", "file")])

    def test_backslash_escapes(self):
        self.assertEqual(tokens_of("echo a\\;b"), [("echo", "a;b")])
        self.assertEqual(tokens_of('echo "a\\"b"'), [("echo", 'a"b')])

    def test_unterminated_quote_swallows_rest(self):
        self.assertEqual(
            segment("echo 'abc ; rm x"),
            [Segment(tokens=("echo", "abc ; rm x"))],
        )

    def test_line_continuation(self):
        self.assertEqual(tokens_of("ls \\\n-la")[-1], ("ls", "-la"))


class TestRedirects(unittest.TestCase):

    def test_output_redirect_is_recorded(self):
        part = segment("sort data.csv > sorted.csv")[0]
        self.assertEqual(part.tokens, ("sort", "data.csv", "sorted.csv"))
        self.assertEqual(part.redirects, (">",))
        self.assertTrue(part.has_output_redirect)

    def test_redirect_forms(self):
        cases = {
            "echo foo >> file.txt": ">>",
            "grep x 2>/dev/null": "2>",
            "ls 2>&1": "2>&",
            "make &> build.log": "&>",
            "echo x >| file": ">|",
            "exec 3<>file": "<>",
            "echo hi >": ">",
        }
        for raw, operator in cases.items():
            with self.subTest(raw=raw):
                self.assertEqual(segment(raw)[0].redirects, (operator,))

    def test_fd_number_is_not_a_token(self):
        self.assertEqual(segment("grep x 2>/dev/null")[0].tokens, ("grep", "x", "/dev/null"))

    def test_quoted_redirect_is_literal(self):
        part = segment('echo ">"')[0]
        self.assertEqual(part.redirects, ())
        self.assertFalse(part.has_output_redirect)

    def test_input_redirect_only_splits(self):
        part = segment("patch<fix.patch")[0]
        self.assertEqual(part.tokens, ("patch", "fix.patch"))
        self.assertEqual(part.redirects, ())


class TestSubstitutions(unittest.TestCase):

    def test_command_substitutions_are_collected(self):
        part = segment("echo $(date) `whoami`")[0]
        self.assertEqual(part.tokens, ("echo", "$(date)", "`whoami`"))
        self.assertEqual(part.substitutions, ("date", "whoami"))

    def test_nested_substitution_body(self):
        part = segment("echo $(echo $(date))")[0]
        self.assertEqual(part.substitutions, ("echo $(date)",))

    def test_substitution_inside_double_quotes(self):
        part = segment('echo "today is $(date)"')[0]
        self.assertEqual(part.substitutions, ("date",))

    def test_no_substitution_in_single_quotes(self):
        part = segment("echo '$(date)'")[0]
        self.assertEqual(part.substitutions, ())

    def test_separator_inside_substitution_does_not_split(self):
        self.assertEqual(len(segment("echo $(ls; rm x)")), 1)

    def test_process_substitution(self):
        part = segment("diff <(ls a) <(ls b)")[0]
        self.assertEqual(part.tokens, ("diff", "<(ls a)", "<(ls b)"))
        self.assertEqual(part.substitutions, ("ls a", "ls b"))


class TestMultiLine(unittest.TestCase):

    def test_each_line_is_segmented(self):
        segments = tokens_of("ls\nrm file")
        self.assertEqual(segments[:2], [("ls",), ("rm", "file")])

    def test_whole_text_is_scanned_too(self):
        segments = segment('git commit -m "a\nb"')
        self.assertEqual(segments[-1].tokens, ("git", "commit", "-m", "a\nb"))

    def test_blank_and_comment_lines_are_skipped(self):
        segments = tokens_of("\n# setup\nls\n")
        self.assertEqual(segments[0], ("ls",))


if __name__ == "__main__":
    unittest.main()
