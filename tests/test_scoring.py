"""Tests for scoring module."""
import math

import pytest

from src.indexing import build_index_entry
from src.scoring import (
    best_fuzzy_similarity,
    edit_distance,
    levenshtein_similarity,
    score_entry,
)
from tests.conftest import NOW, make_bookmark, make_history


def history_entry(title: str, url: str, visit_count: int = 1, days_ago: float = 0.0):
    return build_index_entry(make_history("h", title, url, visit_count, days_ago), NOW)


class TestEditDistance:
    @pytest.mark.parametrize("a, b, expected", [
        ("", "", 0),
        ("abc", "", 3),
        ("", "abc", 3),
        ("kitten", "sitting", 3),
        ("flaw", "lawn", 2),
        ("github", "github", 0),
        ("gihtub", "github", 1),
        ("abdc", "abcd", 1),
        ("ca", "abc", 3),
    ])
    def test_known_distances(self, a, b, expected):
        assert edit_distance(a, b) == expected

    @pytest.mark.parametrize("a, b", [
        ("kitten", "sitting"),
        ("gihtub", "github"),
        ("", "openai"),
        ("pull", "requests"),
    ])
    def test_symmetric(self, a, b):
        assert edit_distance(a, b) == edit_distance(b, a)

    def test_identity(self):
        for word in ["", "a", "bookmark", "https://openai.com/blog"]:
            assert edit_distance(word, word) == 0


class TestSimilarity:
    def test_both_empty(self):
        assert levenshtein_similarity("", "") == 1.0

    def test_one_empty(self):
        assert levenshtein_similarity("", "abc") == 0.0
        assert levenshtein_similarity("abc", "") == 0.0

    def test_transposed_typo_exceeds_threshold(self):
        assert levenshtein_similarity("gihtub", "github") > 0.7

    def test_adjacent_swap_counts_as_one_edit(self):
        assert math.isclose(levenshtein_similarity("abdc", "abcd"), 0.75)

    def test_formula(self):
        assert math.isclose(levenshtein_similarity("kitten", "sitting"), 4 / 7)

    def test_best_fuzzy_lowercases_targets(self):
        assert best_fuzzy_similarity("github", ["GitHub", "other"]) == 1.0


class TestScoreEntry:
    def test_title_match(self):
        entry = history_entry("GitHub Pull Requests", "https://example.com/x", days_ago=60)
        result = score_entry(entry, ["github"])
        assert result.matched_fields == ["title", "keywords"]
        assert math.isclose(result.score, (3.0 + 1.5) * entry.base_score)

    def test_title_url_and_keywords(self):
        entry = history_entry("OpenAI Blog", "https://openai.com/blog")
        result = score_entry(entry, ["openai"])
        assert result.matched_fields == ["title", "url", "keywords"]
        assert math.isclose(result.score, 6.5 * entry.base_score)

    def test_keyword_only_match(self):
        record = make_bookmark("b1", "Team Wiki", "https://wiki.example.com", folder="work", tags=["urgent"])
        entry = build_index_entry(record, NOW)
        result = score_entry(entry, ["urgent"])
        assert result.matched_fields == ["keywords"]
        assert math.isclose(result.score, 1.5 * entry.base_score)

    def test_no_match_scores_zero(self):
        entry = history_entry("OpenAI Blog", "https://openai.com/blog")
        result = score_entry(entry, ["zzzzqqq"])
        assert result.score == 0
        assert result.matched_fields == []

    def test_fuzzy_fallback(self):
        entry = history_entry("GitHub Pull Requests", "https://github.com/pulls")
        result = score_entry(entry, ["gihtub"], fuzzy_match=True)
        assert result.matched_fields == ["fuzzy"]
        assert math.isclose(result.score, (5 / 6) * 0.5 * entry.base_score)

    def test_fuzzy_disabled(self):
        entry = history_entry("GitHub Pull Requests", "https://github.com/pulls")
        result = score_entry(entry, ["gihtub"], fuzzy_match=False)
        assert result.score == 0
        assert result.matched_fields == []

    def test_fuzzy_below_threshold_ignored(self):
        entry = history_entry("GitHub Pull Requests", "https://github.com/pulls")
        # "gthb" vs "github": distance 2, similarity 4/6
        result = score_entry(entry, ["gthb"])
        assert result.score == 0

    def test_fuzzy_only_when_term_has_no_exact_hit(self):
        entry = history_entry("GitHub Pull Requests", "https://github.com/pulls")
        result = score_entry(entry, ["pull", "gihtub"])
        assert result.matched_fields == ["title", "url", "keywords", "fuzzy"]

    def test_coverage_bonus_uses_whole_query_field_count(self):
        entry = history_entry("GitHub Pull Requests", "https://example.com/x", days_ago=60)
        # "github" hits title + keywords; "pull" hits the same two fields
        result = score_entry(entry, ["github", "pull"])
        raw = (3.0 + 1.5) * 2 * entry.base_score
        assert result.matched_fields == ["title", "keywords"]
        assert math.isclose(result.score, raw * (1 + (2 / 2) * 0.5))

    def test_single_term_no_coverage_bonus(self):
        entry = history_entry("Alpha", "https://example.com/x", days_ago=60)
        result = score_entry(entry, ["alpha"])
        assert math.isclose(result.score, 4.5 * entry.base_score)

    def test_base_score_weighting(self):
        fresh = history_entry("Alpha", "https://example.com/x", visit_count=10)
        stale = history_entry("Alpha", "https://example.com/x", visit_count=1, days_ago=60)
        assert score_entry(fresh, ["alpha"]).score > score_entry(stale, ["alpha"]).score
