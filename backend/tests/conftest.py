"""Shared test fixtures: a scripted completion service and sample candidate data."""

import json
from datetime import date

import pytest

from models.schemas.candidate import CandidateExperience, CandidateProfile, Company, Education, Role
from services.completion_client import CompletionConfig

SAMPLE_JD = (
    "Senior Product Manager, Payments. Acme Corp builds billing software for small "
    "businesses across North America. We are looking for a product leader to own our "
    "payments roadmap from discovery to launch. Requirements: Bachelor's degree or "
    "equivalent practical experience. 5+ years in product management. Strong SQL skills "
    "and hands-on experience with A/B testing. Excellent stakeholder management and "
    "communication skills. Nice to have: familiarity with Stripe or other payment "
    "platforms. You will partner with engineering, design and sales to ship features "
    "that customers love and measure their impact."
)

STAGE1_PAYLOAD = {
    "jobRequirements": [
        {"requirement": "Bachelor's degree or equivalent practical experience", "importance": "critical",
         "category": "education_degree", "minimumDegreeLevel": "Bachelor's"},
        {"requirement": "Equivalent practical experience", "importance": "critical",
         "category": "years_experience"},
        {"requirement": "5+ years in product management", "importance": "critical",
         "category": "years_experience", "minimumYears": 5, "specificRole": "product management"},
        {"requirement": "SQL proficiency", "importance": "high", "category": "technical_skill"},
        {"requirement": "Experience with A/B testing", "importance": "high", "category": "technical_skill"},
        {"requirement": "Stakeholder management", "importance": "critical", "category": "soft_skill"},
        {"requirement": "Familiarity with Stripe", "importance": "low", "category": "domain_knowledge"},
    ],
    "allKeywords": ["SQL", "A/B testing", "stakeholder management", "Stripe", "sql", "roadmap"],
    "jobTitle": "Senior Product Manager, Payments",
    "companySummary": "Acme Corp builds billing software for small businesses",
}

ROLE_KEY = "Beta Payments - Product Manager"

BULLETS_PAYLOAD = {
    "bulletPoints": {
        ROLE_KEY: [
            {"text": "Led stakeholder management across engineering and sales for the payments roadmap",
             "experienceId": "exp-2", "keywordsUsed": ["stakeholder management", "roadmap"],
             "relevanceScore": 9},
            {"text": "Increased checkout conversion by 18% by running A/B testing on pricing pages with SQL",
             "experienceId": "exp-1", "keywordsUsed": ["A/B testing", "SQL", "Stripe"],
             "relevanceScore": 7},
        ]
    },
    "keywordsUsed": ["stakeholder management", "A/B testing", "SQL", "Stripe", "roadmap"],
    "keywordsNotUsed": [],
}


class StubCompletionService:
    """Deterministic CompletionService that replays scripted responses.

    Each scripted item is either the completion text or an exception to raise.
    """

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls: list[tuple[str, CompletionConfig]] = []

    def queue(self, *responses) -> None:
        self.responses.extend(responses)

    async def complete(self, prompt: str, config: CompletionConfig) -> str:
        self.calls.append((prompt, config))
        if not self.responses:
            raise AssertionError("Unexpected completion call")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def stub_completion():
    return StubCompletionService()


@pytest.fixture
def sample_jd():
    return SAMPLE_JD


@pytest.fixture
def stage1_text():
    return json.dumps(STAGE1_PAYLOAD)


@pytest.fixture
def bullets_text():
    return json.dumps(BULLETS_PAYLOAD)


@pytest.fixture
def today():
    return date(2024, 6, 1)


@pytest.fixture
def sample_profile():
    return CandidateProfile(
        user_id="user-1",
        companies=[Company(id="c1", name="Beta Payments")],
        roles=[
            Role(id="r1", company_id="c1", title="Product Manager", specialty="Payments, SaaS",
                 start_date=date(2018, 1, 1), end_date=date(2024, 1, 1)),
        ],
        experiences=[
            CandidateExperience(
                id="exp-1", role_id="r1", title="Launched self-serve billing",
                situation="Small business customers abandoned checkout",
                task="Improve checkout conversion",
                action="Wrote SQL queries to size the drop-off and ran A/B testing on pricing pages",
                result="Increased conversion by 18% in 6 months",
                tags=["SQL", "A/B testing", "pricing"],
            ),
            CandidateExperience(
                id="exp-2", role_id="r1", title="Aligned teams on the payments roadmap",
                situation="Engineering and sales disagreed on priorities",
                task="Build one roadmap for payments",
                action="Led stakeholder management across engineering and sales",
                result="Shipped the Stripe integration 3 weeks early",
                tags=["stakeholder management", "Stripe", "payments"],
            ),
        ],
        education=[Education(id="e1", degree="Bachelor's", field="Economics", school="State University")],
    )
