"""Relevance scoring of index entries against query terms."""
from typing import Iterable, List

from src.models import IndexEntry, MatchResult


TITLE_WEIGHT = 3.0
URL_WEIGHT = 2.0
KEYWORD_WEIGHT = 1.5
FUZZY_WEIGHT = 0.5
FUZZY_THRESHOLD = 0.7
COVERAGE_WEIGHT = 0.5

FIELD_TITLE = "title"
FIELD_URL = "url"
FIELD_KEYWORDS = "keywords"
FIELD_FUZZY = "fuzzy"


def edit_distance(a: str, b: str) -> int:
    """Compute the edit distance between two strings.

    Insertions, deletions and substitutions cost 1 each. Swapping two adjacent
    characters also costs 1, so a transposed typo such as "gihtub" is one
    edit away from "github" (optimal string alignment distance).

    Args:
        a: First string
        b: Second string

    Returns:
        Minimum number of edits turning ``a`` into ``b``
    """
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    # Three rolling rows: i-2, i-1 and i
    before_prev: List[int] = []
    prev = list(range(len(b) + 1))

    for i in range(1, len(a) + 1):
        current = [i] + [0] * len(b)
        for j in range(1, len(b) + 1):
            cost = 0 if a[i - 1] == b[j - 1] else 1
            current[j] = min(
                current[j - 1] + 1,
                prev[j] + 1,
                prev[j - 1] + cost,
            )
            if i > 1 and j > 1 and a[i - 1] == b[j - 2] and a[i - 2] == b[j - 1]:
                current[j] = min(current[j], before_prev[j - 2] + 1)
        before_prev, prev = prev, current

    return prev[len(b)]


def levenshtein_similarity(a: str, b: str) -> float:
    """Normalized similarity in [0, 1]: 1 - distance / longer length."""
    if not a:
        return 1.0 if not b else 0.0
    if not b:
        return 0.0

    max_length = max(len(a), len(b))
    return (max_length - edit_distance(a, b)) / max_length


def best_fuzzy_similarity(term: str, targets: Iterable[str]) -> float:
    """Return the highest similarity between ``term`` and any lowercased target."""
    best = 0.0
    for target in targets:
        best = max(best, levenshtein_similarity(term, target.lower()))
    return best


def score_entry(entry: IndexEntry, query_terms: List[str], fuzzy_match: bool = True) -> MatchResult:
    """Score an index entry against query terms.

    Each term adds 3.0 for a title substring hit, 2.0 for a URL hit and 1.5
    for a keyword hit. A term with no exact hit may add half of its best
    fuzzy similarity when that similarity exceeds 0.7. The sum is weighted by
    the entry's base score; multi-term queries get a coverage bonus based on
    how many distinct field categories matched.

    Args:
        entry: Index entry to score
        query_terms: Lowercase query terms
        fuzzy_match: Whether to fall back to edit-distance matching

    Returns:
        MatchResult with the score (0 means no match) and matched field tags
    """
    title = entry.title.lower()
    url = entry.url.lower()
    matched_fields: List[str] = []

    def mark(field_name: str) -> None:
        if field_name not in matched_fields:
            matched_fields.append(field_name)

    total_score = 0.0

    for term in query_terms:
        term_score = 0.0

        if term in title:
            term_score += TITLE_WEIGHT
            mark(FIELD_TITLE)

        if term in url:
            term_score += URL_WEIGHT
            mark(FIELD_URL)

        if any(term in keyword for keyword in entry.keywords):
            term_score += KEYWORD_WEIGHT
            mark(FIELD_KEYWORDS)

        if fuzzy_match and term_score == 0:
            similarity = best_fuzzy_similarity(term, [title, url, *entry.keywords])
            if similarity > FUZZY_THRESHOLD:
                term_score += similarity * FUZZY_WEIGHT
                mark(FIELD_FUZZY)

        total_score += term_score

    total_score *= entry.base_score

    if len(query_terms) > 1:
        # Ratio can exceed 1 when a single term hits several fields
        match_ratio = len(matched_fields) / len(query_terms)
        total_score *= 1 + match_ratio * COVERAGE_WEIGHT

    return MatchResult(score=total_score, matched_fields=matched_fields)
