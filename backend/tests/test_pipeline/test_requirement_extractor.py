"""Tests for Stage 1: Requirement Extractor."""

import json

import pytest

from models.schemas.job_requirements import Category, DegreeLevel, Importance
from services.analysis_cache import AnalysisCache
from services.errors import ExtractionError, TransportError
from services.pipeline.requirement_extractor import (
    RequirementExtractor,
    dedupe_keywords,
    parse_stage1_response,
)
from services.stores import InMemoryCacheStore


class TestParseStage1Response:
    def test_bachelors_or_equivalent_scenario(self, stage1_text, sample_jd):
        assert 400 <= len(sample_jd) <= 10000
        result = parse_stage1_response(stage1_text)

        degree = [r for r in result.job_requirements if r.category == Category.EDUCATION_DEGREE]
        years = [r for r in result.job_requirements if r.category == Category.YEARS_EXPERIENCE]
        assert len(degree) == 1
        assert degree[0].minimum_degree_level == DegreeLevel.BACHELORS
        assert degree[0].requirement == "Bachelor's degree"
        assert len(years) == 1
        assert years[0].specific_role == "product management"
        assert years[0].minimum_years == 5
        assert not any("equivalent" in r.requirement.lower() for r in result.job_requirements)

    def test_related_qualifier_kept_verbatim(self):
        text = json.dumps({
            "jobRequirements": [
                {"requirement": "3+ years in marketing or related field", "importance": "high",
                 "category": "years_experience", "minimumYears": 3, "specificRole": "marketing"},
            ],
            "allKeywords": ["marketing"],
        })
        result = parse_stage1_response(text)
        assert result.job_requirements[0].requirement == "3+ years in marketing or related field"

    def test_defaults_for_missing_title_and_summary(self):
        result = parse_stage1_response('{"jobRequirements": [], "allKeywords": []}')
        assert result.job_title == "Position"
        assert result.company_summary == "Company"

    def test_keywords_deduplicated(self, stage1_text):
        result = parse_stage1_response(stage1_text)
        assert result.all_keywords == ["SQL", "A/B testing", "stakeholder management", "Stripe", "roadmap"]

    def test_importance_and_degree_normalised(self):
        text = json.dumps({
            "jobRequirements": [
                {"requirement": "Master's degree", "importance": "High",
                 "category": "education_degree", "minimumDegreeLevel": "Masters"},
                {"requirement": "Python", "importance": "whenever", "category": "technical_skill"},
                {"requirement": "  ", "importance": "low", "category": "technical_skill"},
            ],
            "allKeywords": [],
        })
        result = parse_stage1_response(text)
        assert len(result.job_requirements) == 2
        assert result.job_requirements[0].importance == Importance.HIGH
        assert result.job_requirements[0].minimum_degree_level == DegreeLevel.MASTERS
        assert result.job_requirements[1].importance == Importance.MEDIUM

    def test_code_fenced_response(self, stage1_text):
        result = parse_stage1_response(f"```json\n{stage1_text}\n```")
        assert result.job_title == "Senior Product Manager, Payments"

    @pytest.mark.parametrize(
        "text",
        [
            "I could not find any requirements.",
            '{"allKeywords": []}',
            '{"jobRequirements": "none", "allKeywords": []}',
            '{"jobRequirements": [{"requirement": "SQL", "category": "salary"}], "allKeywords": []}',
        ],
    )
    def test_malformed_raises_extraction_error(self, text):
        with pytest.raises(ExtractionError) as exc:
            parse_stage1_response(text)
        assert exc.value.retryable is False


def test_dedupe_keywords():
    assert dedupe_keywords(["SQL", " sql ", "Python", "", "python"]) == ["SQL", "Python"]


@pytest.mark.asyncio
async def test_extract_uses_deterministic_config(stub_completion, stage1_text, sample_jd):
    stub_completion.queue(stage1_text)
    extractor = RequirementExtractor(stub_completion)
    result = await extractor.extract(sample_jd, "user-1")

    assert len(result.job_requirements) == 6
    prompt, config = stub_completion.calls[0]
    assert config.temperature == 0.0
    assert config.max_output_tokens == 3000
    assert sample_jd in prompt
    assert "equivalent experience" in prompt.lower()


@pytest.mark.asyncio
async def test_extract_writes_cache(stub_completion, stage1_text, sample_jd):
    stub_completion.queue(stage1_text)
    cache = AnalysisCache(InMemoryCacheStore())
    extractor = RequirementExtractor(stub_completion, cache=cache)
    result = await extractor.extract(sample_jd, "user-1")
    assert await cache.get("user-1", sample_jd) == result


@pytest.mark.asyncio
async def test_transport_error_propagates(stub_completion, sample_jd):
    stub_completion.queue(TransportError("rate limited", code="RATE_LIMITED"))
    extractor = RequirementExtractor(stub_completion)
    with pytest.raises(TransportError):
        await extractor.extract(sample_jd, "user-1")
