"""Tests for scoring and matching primitives."""

import re

import pytest

from neo_fuzzy.search.fuzzy import fuzzy_score, levenshtein, regexp, smart_case_pattern


class TestLevenshtein:
    """Edit distance properties."""

    @pytest.mark.parametrize(
        "a, b, expected",
        [
            ("kitten", "sitting", 3),
            ("flaw", "lawn", 2),
            ("", "abc", 3),
            ("abc", "", 3),
            ("a", "b", 1),
            ("ab", "ba", 2),
            ("src/main.rs", "src/lib.rs", 3),
        ],
    )
    def test_known_distances(self, a, b, expected):
        assert levenshtein(a, b) == expected

    @pytest.mark.parametrize("text", ["", "a", "README.md", "some/deep/path.txt"])
    def test_identity_is_zero(self, text):
        assert levenshtein(text, text) == 0

    @pytest.mark.parametrize(
        "a, b",
        [("abc", "yabd"), ("main", "src/main.rs"), ("x", "")],
    )
    def test_symmetric(self, a, b):
        assert levenshtein(a, b) == levenshtein(b, a)

    def test_bounded_by_longer_string(self):
        assert levenshtein("abc", "uvwxyz") <= 6


class TestFuzzyScore:
    """Ranking used by the corpus queries."""

    def test_empty_query_ranks_everything_equally(self):
        assert fuzzy_score("", "anything") == 0
        assert fuzzy_score("", "") == 0

    def test_closer_candidate_ranks_first(self):
        assert fuzzy_score("abc", "abc") < fuzzy_score("abc", "xabcx")


class TestSmartCase:
    """Smart-case subsequence pattern."""

    def test_lowercase_matches_both_cases(self):
        pattern = re.compile(smart_case_pattern("ab"))
        assert pattern.search("ab")
        assert pattern.search("AB")
        assert pattern.search("a/x/B")

    def test_uppercase_is_exact(self):
        pattern = re.compile(smart_case_pattern("Ab"))
        assert pattern.search("Ab")
        assert not pattern.search("ab")

    def test_special_characters_are_escaped(self):
        pattern = re.compile(smart_case_pattern("a.b"))
        assert pattern.search("a.b")
        assert not pattern.search("axb")

    def test_order_matters(self):
        pattern = re.compile(smart_case_pattern("abc"))
        assert pattern.search("xaxbxc")
        assert not pattern.search("cba")

    def test_regexp_handles_null(self):
        assert regexp("a", None) is False
        assert regexp("a", "cat") is True
