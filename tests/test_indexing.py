"""Tests for indexing module."""
import math

from src.indexing import (
    MAX_KEYWORDS,
    build_index_entry,
    compute_base_score,
    extract_domain,
    extract_keywords,
    tokenize_query,
)
from src.models import RecordKind
from tests.conftest import NOW, make_bookmark, make_history


class TestTokenizeQuery:
    def test_lowercases_and_splits_on_punctuation(self):
        assert tokenize_query("GitHub/Pull-Requests!") == ["github", "pull", "requests"]

    def test_drops_empty_tokens(self):
        assert tokenize_query("   ") == []
        assert tokenize_query("--a  b--") == ["a", "b"]

    def test_preserves_order_and_duplicates(self):
        assert tokenize_query("blog openai blog") == ["blog", "openai", "blog"]


class TestExtractKeywords:
    def test_filters_stop_words_and_short_words(self):
        keywords = extract_keywords("The Art of Go", "https://www.example.com/go")
        assert keywords == ["art", "example"]

    def test_deduplicates_in_order(self):
        keywords = extract_keywords("Python python", "https://python.org/python")
        assert keywords == ["python"]

    def test_caps_extracted_keywords(self):
        title = " ".join(f"word{i:02d}" for i in range(30))
        keywords = extract_keywords(title, "")
        assert len(keywords) == MAX_KEYWORDS
        assert keywords[0] == "word00"
        assert keywords[-1] == "word19"


class TestExtractDomain:
    def test_strips_www(self):
        assert extract_domain("https://www.github.com/pulls") == "github.com"

    def test_keeps_subdomain(self):
        assert extract_domain("https://docs.python.org/3/") == "docs.python.org"

    def test_invalid_url_returns_empty(self):
        assert extract_domain("not a url") == ""
        assert extract_domain("") == ""


class TestBaseScore:
    def test_history_visit_and_recency_bonus(self):
        record = make_history("h", "T", "https://t.com", visit_count=5)
        expected = 1.0 + math.log(6) * 0.1 + 0.2
        assert math.isclose(compute_base_score(record, NOW), expected)

    def test_recency_bonus_decays_to_zero(self):
        half = make_bookmark("b", "T", "https://t.com", days_ago=15)
        old = make_bookmark("b", "T", "https://t.com", days_ago=45)
        assert math.isclose(compute_base_score(half, NOW), 1.1)
        assert compute_base_score(old, NOW) == 1.0

    def test_never_below_one(self):
        record = make_history("h", "T", "https://t.com", visit_count=0, days_ago=365)
        assert compute_base_score(record, NOW) >= 1.0


class TestBuildIndexEntry:
    def test_history_entry(self):
        record = make_history("h1", "OpenAI Blog", "https://www.OpenAI.com/blog")
        entry = build_index_entry(record, NOW)

        assert entry.id == "h1"
        assert entry.kind is RecordKind.HISTORY
        assert entry.title == "OpenAI Blog"
        assert entry.url == "https://www.OpenAI.com/blog"
        assert entry.searchable_text == "openai blog https://www.openai.com/blog openai.com"
        assert entry.keywords == ["openai", "blog"]
        assert entry.indexed_at == NOW

    def test_bookmark_folder_and_tags_appended(self):
        record = make_bookmark("b1", "Team Wiki", "https://wiki.example.com", folder="Work", tags=["Urgent", "wiki"])
        entry = build_index_entry(record, NOW)

        assert entry.kind is RecordKind.BOOKMARK
        assert entry.keywords == ["team", "wiki", "example", "work", "urgent"]

    def test_empty_folder_not_added(self):
        record = make_bookmark("b1", "Team Wiki", "https://wiki.example.com")
        entry = build_index_entry(record, NOW)
        assert "" not in entry.keywords
