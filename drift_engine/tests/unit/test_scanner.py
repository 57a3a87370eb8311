"""Unit tests for drift_engine.parser.scanner."""

from __future__ import annotations

from drift_engine.parser.scanner import (
    find_keyword,
    find_keywords,
    first_unquoted,
    matching_bracket,
    quote_identifier,
    quote_literal,
    read_identifier,
    read_quoted,
    scan,
    split_top_level,
    strip_wrapping_parens,
)

# ---------------------------------------------------------------------------
# scan
# ---------------------------------------------------------------------------


class TestScan:
    def test_bracket_pair_reported_at_enclosing_depth(self):
        depths = [(pos.char, pos.depth) for pos in scan("a(b)c")]
        assert depths == [("a", 0), ("(", 0), ("b", 1), (")", 0), ("c", 0)]

    def test_square_brackets_count_as_depth(self):
        positions = list(scan("[x]"))
        assert positions[1].depth == 1

    def test_quoted_segment_flagged(self):
        positions = list(scan("x'a,b'y"))
        assert [p.quoted for p in positions] == [False, True, True, True, True, True, False]

    def test_backslash_escaped_quote_stays_inside(self):
        positions = list(scan("'a\\'b'c"))
        assert all(p.quoted for p in positions[:6])
        assert positions[6].quoted is False

    def test_doubled_quote_stays_inside(self):
        positions = list(scan("'a''b'c"))
        assert all(p.quoted for p in positions[:6])
        assert positions[6].quoted is False

    def test_brackets_inside_quotes_do_not_change_depth(self):
        positions = list(scan("'(('x"))
        assert positions[-1].depth == 0

    def test_unbalanced_closer_never_goes_negative(self):
        assert all(pos.depth >= 0 for pos in scan("))a"))


# ---------------------------------------------------------------------------
# split_top_level
# ---------------------------------------------------------------------------


class TestSplitTopLevel:
    def test_plain_split(self):
        assert split_top_level("a, b ,c") == ["a", "b", "c"]

    def test_nested_commas_kept(self):
        assert split_top_level("Map(String, Array(Int32)), x") == ["Map(String, Array(Int32))", "x"]

    def test_quoted_commas_kept(self):
        assert split_top_level("'e,f', g") == ["'e,f'", "g"]

    def test_backtick_commas_kept(self):
        assert split_top_level("`a,b` Int32, c") == ["`a,b` Int32", "c"]

    def test_backslash_escaped_quote(self):
        assert split_top_level("'it\\'s, ok', b") == ["'it\\'s, ok'", "b"]

    def test_doubled_quote(self):
        assert split_top_level("'it''s, ok', b") == ["'it''s, ok'", "b"]

    def test_default_with_function_call(self):
        parts = split_top_level("`ts` DateTime DEFAULT toStartOfDay(now(), 'UTC'), `id` UInt64")
        assert parts == ["`ts` DateTime DEFAULT toStartOfDay(now(), 'UTC')", "`id` UInt64"]

    def test_empty_parts_dropped(self):
        assert split_top_level("a;;b;", separator=";") == ["a", "b"]

    def test_empty_input(self):
        assert split_top_level("") == []


# ---------------------------------------------------------------------------
# Bracket and character lookup
# ---------------------------------------------------------------------------


class TestMatchingBracket:
    def test_nested(self):
        assert matching_bracket("f(a(b)c)d", 1) == 7

    def test_inner(self):
        assert matching_bracket("f(a(b)c)d", 3) == 5

    def test_quoted_paren_ignored(self):
        text = "(')')"
        assert matching_bracket(text, 0) == 4

    def test_unbalanced(self):
        assert matching_bracket("f(a", 1) == -1

    def test_not_a_bracket(self):
        assert matching_bracket("abc", 0) == -1


class TestFirstUnquoted:
    def test_skips_quoted(self):
        assert first_unquoted("'(' (x)", "(") == 4

    def test_missing(self):
        assert first_unquoted("abc", "(") == -1

    def test_any_depth(self):
        assert first_unquoted("(a,b)", ",", depth=None) == 2

    def test_depth_zero_only(self):
        assert first_unquoted("(a,b)", ",") == -1


# ---------------------------------------------------------------------------
# Keywords
# ---------------------------------------------------------------------------


class TestFindKeywords:
    def test_keyword_in_literal_ignored(self):
        text = "Enum8('DEFAULT' = 1) DEFAULT 1"
        match = find_keyword(text, ("DEFAULT",))
        assert match is not None
        assert match.start == 21

    def test_case_insensitive(self):
        match = find_keyword("String comment 'x'", ("COMMENT",))
        assert match is not None
        assert match.start == 7

    def test_word_boundary(self):
        assert find_keyword("DEFAULTS", ("DEFAULT",)) is None
        assert find_keyword("my_ttl", ("TTL",)) is None

    def test_longest_keyword_wins(self):
        found = find_keywords("ORDER BY id PRIMARY KEY id", ["PRIMARY", "PRIMARY KEY", "ORDER BY"])
        assert [m.keyword for m in found] == ["ORDER BY", "PRIMARY KEY"]

    def test_multi_word_keyword_allows_whitespace_runs(self):
        match = find_keyword("ORDER\n   BY id", ("ORDER BY",))
        assert match is not None
        assert match.end == len("ORDER\n   BY")

    def test_nested_keyword_skipped_at_depth_zero(self):
        assert find_keyword("f(x TTL y)", ("TTL",)) is None

    def test_any_depth(self):
        assert find_keyword("f(x TTL y)", ("TTL",), depth=None) is not None

    def test_start_offset(self):
        match = find_keyword("TYPE a TYPE b", ("TYPE",), start=1)
        assert match is not None
        assert match.start == 7


# ---------------------------------------------------------------------------
# Literals and identifiers
# ---------------------------------------------------------------------------


class TestReadQuoted:
    def test_simple(self):
        assert read_quoted("'abc' rest", 0) == ("abc", 5)

    def test_backslash_escape(self):
        assert read_quoted("'it\\'s'", 0) == ("it's", 7)

    def test_doubled_quote(self):
        assert read_quoted("'it''s'", 0) == ("it's", 7)

    def test_double_quotes(self):
        assert read_quoted('"a b"', 0) == ("a b", 5)

    def test_unterminated(self):
        assert read_quoted("'abc", 0) is None

    def test_not_a_quote(self):
        assert read_quoted("abc", 0) is None


class TestReadIdentifier:
    def test_backticked(self):
        assert read_identifier("`my col` Int32") == ("my col", 8)

    def test_bare(self):
        assert read_identifier("  id Int32") == ("id", 4)

    def test_stops_at_paren(self):
        assert read_identifier("idx(a)") == ("idx", 3)

    def test_nothing(self):
        assert read_identifier("   ") is None


class TestStripWrappingParens:
    def test_strips_one_pair(self):
        assert strip_wrapping_parens("((a, b))") == "(a, b)"

    def test_keeps_partial_wrap(self):
        assert strip_wrapping_parens("(a) + (b)") == "(a) + (b)"

    def test_function_call_untouched(self):
        assert strip_wrapping_parens("tuple()") == "tuple()"


class TestQuoting:
    def test_quote_literal_escapes(self):
        assert quote_literal("it's a \\ path") == "'it\\'s a \\\\ path'"

    def test_quote_literal_round_trips_through_read_quoted(self):
        assert read_quoted(quote_literal('{"a":"it\'s"}'), 0)[0] == '{"a":"it\'s"}'

    def test_quote_identifier(self):
        assert quote_identifier("events") == "`events`"

    def test_quote_identifier_escapes_backtick(self):
        assert quote_identifier("a`b") == "`a``b`"
