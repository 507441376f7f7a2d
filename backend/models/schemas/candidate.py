"""Candidate-side records: companies, roles, STAR experiences and education."""

from datetime import date

from pydantic import BaseModel


class Company(BaseModel):
    id: str
    name: str
    start_date: date | None = None
    end_date: date | None = None
    is_current: bool = False


class Role(BaseModel):
    id: str
    company_id: str
    title: str
    specialty: str | None = None  # e.g. "Growth, SaaS"
    start_date: date | None = None
    end_date: date | None = None
    is_current: bool = False


class RoleWithDuration(Role):
    """A role enriched with its company name and tenure."""
    company: str = ""
    duration_months: int = 0
    duration_years: int = 0


class CandidateExperience(BaseModel):
    """One STAR (Situation, Task, Action, Result) entry owned by a role."""
    id: str
    role_id: str
    title: str
    situation: str | None = None
    task: str | None = None
    action: str | None = None
    result: str | None = None
    tags: list[str] = []


class Education(BaseModel):
    id: str = ""
    degree: str  # free text, e.g. "Bachelor's", "BS", "MBA"
    field: str | None = None
    school: str | None = None
    graduation_date: date | None = None
    is_expected_graduation: bool = False


class CandidateProfile(BaseModel):
    """Read-only snapshot of everything the pipeline needs about one user."""
    user_id: str
    companies: list[Company] = []
    roles: list[Role] = []
    experiences: list[CandidateExperience] = []
    education: list[Education] = []
