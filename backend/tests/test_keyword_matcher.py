import pytest

from models.schemas.fit_assessment import MatchType
from services.keyword_matcher import (
    canonicalize,
    classify_match,
    contains_phrase,
    core_phrase,
    has_related_qualifier,
    is_keyword_in_text,
    normalize,
)


def test_normalize_keeps_tech_terms():
    assert normalize("Built APIs in Node.js, C# and C++.") == "built apis in node.js c# and c++"


def test_normalize_splits_hyphenated_words():
    assert normalize("Cross-functional teams") == "cross functional teams"


def test_canonicalize():
    assert canonicalize("K8s") == "kubernetes"
    assert canonicalize("Postgres") == "postgresql"
    assert canonicalize("Kafka") == "kafka"


def test_core_phrase_drops_filler():
    assert core_phrase("Strong SQL proficiency") == "sql"
    assert core_phrase("Experience with A/B testing") == "a/b testing"


def test_contains_phrase_word_boundaries():
    assert contains_phrase("wrote java services", "java")
    assert not contains_phrase("wrote javascript services", "java")
    assert not contains_phrase("senior engineer", "gin")


def test_related_qualifier():
    assert has_related_qualifier("5+ years in marketing or related field")
    assert has_related_qualifier("Degree in Physics or a similar discipline")
    assert not has_related_qualifier("5+ years in marketing")


class TestClassifyMatch:
    def test_exact(self):
        assert classify_match("SQL proficiency", "Wrote SQL queries daily") == MatchType.EXACT

    def test_synonym_alias(self):
        assert classify_match("Kubernetes", "Ran services on K8s") == MatchType.SYNONYM

    def test_synonym_stemmed(self):
        assert classify_match("data pipelines", "Built a data pipeline for billing") == MatchType.SYNONYM

    def test_related_reordered_terms(self):
        assert classify_match("stakeholder management", "Managed stakeholders across teams") == MatchType.RELATED

    def test_related_partial_terms(self):
        assert classify_match("product marketing", "Product Manager") == MatchType.RELATED

    def test_short_alias_not_found_inside_other_words(self):
        assert classify_match("Golang", "Owned the go-to-market plan for payments") == MatchType.NONE
        assert classify_match("TypeScript", "Set up TS lint rules") == MatchType.NONE

    def test_short_requirement_still_matches_long_alias(self):
        assert classify_match("JS", "Rebuilt the checkout in JavaScript") == MatchType.SYNONYM
        assert classify_match("Go", "Wrote Golang services") == MatchType.SYNONYM

    def test_none(self):
        assert classify_match("Kubernetes", "Designed pricing experiments") == MatchType.NONE

    def test_empty_text(self):
        assert classify_match("SQL", "") == MatchType.NONE


class TestKeywordInText:
    def test_exact_whole_phrase(self):
        assert is_keyword_in_text("Ran A/B testing on pricing", "A/B testing", "exact")

    def test_exact_is_case_insensitive(self):
        assert is_keyword_in_text("Wrote sql pipelines", "SQL", "exact")

    def test_exact_rejects_variations(self):
        assert not is_keyword_in_text("Managed a team of five", "management", "exact")

    def test_flexible_accepts_variations(self):
        assert is_keyword_in_text("Managed a team of five", "management", "flexible")

    def test_flexible_needs_every_word(self):
        assert not is_keyword_in_text("Managed the roadmap", "stakeholder management", "flexible")

    def test_short_words_need_exact_match(self):
        assert not is_keyword_in_text("Built AI tooling", "ML", "flexible")
        assert is_keyword_in_text("Built ML tooling", "ML", "flexible")

    @pytest.mark.parametrize("mode", ["exact", "flexible"])
    def test_empty_keyword(self, mode):
        assert not is_keyword_in_text("Anything", "   ", mode)
