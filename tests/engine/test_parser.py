# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Tests for the script line tokenizer."""

import pytest

from gscript.engine.errors import ParseError
from gscript.engine.parser import parse_cond, parse_line, split_words
from gscript.engine.state import Expect


def _no_expand(s):
    return s


def _expand_from(env):
    def _expand(s):
        for key, value in env.items():
            s = s.replace(f"${key}", value)
        return s
    return _expand


class TestSplitWords:
    """Tests for split_words."""

    def test_splits_on_spaces_and_tabs(self):
        words = split_words("echo a\tb  c", _no_expand)
        assert [w.text for w in words] == ["echo", "a", "b", "c"]

    def test_single_quotes_keep_spaces(self):
        words = split_words("execx 'echo hi'", _no_expand)
        assert [w.text for w in words] == ["execx", "echo hi"]
        assert words[1].quoted is True
        assert words[0].quoted is False

    def test_doubled_quote_is_literal(self):
        words = split_words("echo 'it''s'", _no_expand)
        assert words[1].text == "it's"

    def test_empty_quoted_word(self):
        words = split_words("echo ''", _no_expand)
        assert [w.text for w in words] == ["echo", ""]

    def test_quoted_and_plain_parts_join(self):
        words = split_words("echo a'b c'd", _no_expand)
        assert [w.text for w in words] == ["echo", "ab cd"]

    def test_expansion_only_outside_quotes(self):
        words = split_words("echo $X '$X'", _expand_from({"X": "val"}))
        assert [w.text for w in words] == ["echo", "val", "$X"]

    def test_expansion_is_not_resplit(self):
        words = split_words("echo $X", _expand_from({"X": "a b"}))
        assert [w.text for w in words] == ["echo", "a b"]

    def test_unterminated_quote(self):
        with pytest.raises(ParseError, match="unterminated"):
            split_words("echo 'oops", _no_expand)


class TestParseCond:
    """Tests for parse_cond."""

    def test_plain(self):
        ref = parse_cond("root")
        assert ref.name == "root"
        assert ref.negate is False
        assert ref.has_suffix is False

    def test_negated_prefix(self):
        ref = parse_cond("!exec:git")
        assert ref.name == "exec"
        assert ref.suffix == "git"
        assert ref.negate is True
        assert ref.has_suffix is True
        assert str(ref) == "[!exec:git]"

    def test_empty(self):
        with pytest.raises(ParseError):
            parse_cond("!")


class TestParseLine:
    """Tests for parse_line."""

    @pytest.mark.parametrize("line", ["", "   ", "# a comment", "  # indented comment"])
    def test_blank_and_comment_lines(self, line):
        assert parse_line(line, _no_expand) is None

    def test_simple_command(self):
        parsed = parse_line("echo hello world", _no_expand)
        assert parsed.name == "echo"
        assert parsed.args == ["hello", "world"]
        assert parsed.want == Expect.SUCCESS
        assert parsed.background is False
        assert parsed.conds == []

    def test_guards_prefix_and_background(self):
        parsed = parse_line("[file:x] [!root] ? exec sleep 1 &", _no_expand)
        assert [str(c) for c in parsed.conds] == ["[file:x]", "[!root]"]
        assert parsed.want == Expect.ANY
        assert parsed.background is True
        assert parsed.name == "exec"
        assert parsed.args == ["sleep", "1"]

    def test_must_fail_prefix(self):
        parsed = parse_line("! exec false", _no_expand)
        assert parsed.want == Expect.FAILURE

    def test_quoted_specials_are_arguments(self):
        parsed = parse_line("echo '&'", _no_expand)
        assert parsed.background is False
        assert parsed.args == ["&"]

    def test_guard_without_command(self):
        with pytest.raises(ParseError, match="missing command"):
            parse_line("[root]", _no_expand)

    def test_unterminated_guard(self):
        with pytest.raises(ParseError, match="unterminated condition"):
            parse_line("[root echo hi", _no_expand)
