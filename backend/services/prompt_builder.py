"""All prompt templates for completion service calls."""

import json

from models.schemas.candidate import CandidateExperience
from models.schemas.fit_assessment import MatchResult

EXTRACTION_SYSTEM_MESSAGE = (
    "You extract requirements and keywords from job descriptions. You never see "
    "candidate information. Do NOT extract \"equivalent experience\" alternatives "
    "to degrees. Extract degree requirements, field requirements, years of "
    "experience (general and role-specific), skills, and keywords using the "
    "structured categories."
)

BULLETS_SYSTEM_MESSAGE = (
    "You write resume bullets from a candidate's own STAR experiences. You never "
    "invent facts, employers, numbers or tools. Embed keywords only where they "
    "fit naturally."
)

_EXTRACTION_RULES = """EXTRACTION RULES:

1. EDUCATION REQUIREMENTS:
   - DEGREE LEVEL: category "education_degree" with minimumDegreeLevel one of
     "Diploma", "Associate", "Bachelor's", "Master's", "PhD"
   - FIELD: category "education_field" with requiredField (e.g. "Computer Science")
     or fieldCriteria for broad criteria (e.g. "STEM", "Technical field")
   - IGNORE "or equivalent experience" alternatives for education:
     "Bachelor's degree or equivalent practical experience" -> ONLY "Bachelor's degree".
     Do NOT create a separate requirement for the equivalent experience.

2. YEARS OF EXPERIENCE: category "years_experience"
   - "5+ years of experience" -> minimumYears: 5, specificRole: null
   - "3+ years in product management" -> minimumYears: 3, specificRole: "product management"
   - "2-4 years as software engineer" -> minimumYears: 2, specificRole: "software engineering"
   - Keep "or related" / "or similar" qualifiers VERBATIM in the requirement text
     ("5+ years in marketing or related field"); they allow flexible matching.

3. ROLE/TITLE: category "role_title" with requiredTitleKeywords
   - "Background in data science or analytics" -> ["data science", "analytics"]
   - Keep "or related" / "or similar" qualifiers verbatim here too.

4. SKILLS:
   - technical_skill: tools, technologies, programming languages, certifications
   - soft_skill: leadership, communication, problem-solving
   - domain_knowledge: industry knowledge, methodologies

5. IMPORTANCE (exactly one per requirement):
   - absolute: required with no flexibility ("Must be US citizen", "Clearance required")
   - critical: must-have, required, essential
   - high: preferred, strongly desired
   - medium: nice to have
   - low: bonus

6. KEYWORDS: a flat list of ALL relevant terms (technical terms, skills, domain
   terms, action verbs, industry jargon)

CRITICAL RULES:
- Split compound requirements: "SQL and Python" is 2 requirements
- Do NOT extract company names, project names or candidate details
- Only extract what is in the job description"""

_EXTRACTION_OUTPUT = """Return JSON in this EXACT format:
{
  "jobRequirements": [
    {"requirement": "Bachelor's degree", "importance": "critical",
     "category": "education_degree", "minimumDegreeLevel": "Bachelor's"},
    {"requirement": "Degree in Computer Science or related field", "importance": "high",
     "category": "education_field", "requiredField": "Computer Science"},
    {"requirement": "3+ years in product management", "importance": "critical",
     "category": "years_experience", "minimumYears": 3, "specificRole": "product management"},
    {"requirement": "SQL proficiency", "importance": "high", "category": "technical_skill"}
  ],
  "allKeywords": ["keyword1", "keyword2"],
  "jobTitle": "Job title from description",
  "companySummary": "Brief summary of company/role from description"
}"""


def build_extraction_prompt(job_description: str) -> str:
    """Stage 1: requirement and keyword extraction. Sees no candidate data."""
    return f"""You are analyzing a job description to extract requirements and keywords.

JOB DESCRIPTION:
---
{job_description}
---

TASK: Extract requirements and keywords from the job description above. Do NOT
invent requirements. Only extract what is explicitly stated or clearly implied.

{_EXTRACTION_RULES}

{_EXTRACTION_OUTPUT}"""


def _format_experience(exp: CandidateExperience, index: int) -> str:
    lines = [f"  Experience {index}:", f"  - ID: {exp.id}", f"  - Title: {exp.title}"]
    if exp.situation:
        lines.append(f"  - Situation: {exp.situation}")
    if exp.task:
        lines.append(f"  - Task: {exp.task}")
    if exp.action:
        lines.append(f"  - Action: {exp.action}")
    if exp.result:
        lines.append(f"  - Result: {exp.result}")
    if exp.tags:
        lines.append(f"  - Tags: {', '.join(exp.tags)}")
    return "\n".join(lines)


def format_experiences(experiences_by_role: dict[str, list[CandidateExperience]]) -> str:
    blocks = []
    for role_key, exps in experiences_by_role.items():
        body = "\n\n".join(_format_experience(e, i) for i, e in enumerate(exps, 1))
        blocks.append(f"=== {role_key} ===\n{body}")
    return "\n\n".join(blocks)


def build_bullets_prompt(
    experiences_by_role: dict[str, list[CandidateExperience]],
    matched_requirements: list[MatchResult],
    keywords: list[str],
    match_mode: str,
    max_bullets_per_role: int,
    visual_width_max: float,
) -> str:
    """Stage 2b: bullet generation for a candidate who passed the fit gate."""
    if match_mode == "exact":
        keyword_instruction = "Use keywords EXACTLY as they appear in the list"
    else:
        keyword_instruction = "Use keywords or their natural variations (managed/led, developed/built)"

    matched = [m.requirement.requirement for m in matched_requirements]
    role_keys = list(experiences_by_role)
    approx_chars = int(visual_width_max)

    return f"""You are generating resume bullets for a candidate who matched a job.

MATCHED REQUIREMENTS (context on what is relevant):
{json.dumps(matched, indent=2)}

CANDIDATE EXPERIENCES:
{format_experiences(experiences_by_role)}

KEYWORDS TO EMBED:
{json.dumps(keywords, indent=2)}

BULLET GENERATION RULES:
1. Use ONLY facts present in the experiences above. Never invent details.
2. At most {max_bullets_per_role} bullets per role. Use the role keys exactly:
   {json.dumps(role_keys)}
3. Structure: strong action verb + specific context + quantified result.
   Prefer bullets with numbers, percentages, money or time saved when the
   experience has them.
4. Each bullet must fit on one resume line: about {approx_chars} characters at most.
5. No abbreviations. No em-dashes, colons or semicolons.
6. Keywords: {keyword_instruction}. Only embed keywords that fit the content.
7. Give each bullet a relevanceScore from 1 (tangential) to 10 (directly
   addresses several key requirements with quantified impact).

REQUIRED JSON FORMAT:
{{
  "bulletPoints": {{
    "Company - Role": [
      {{"text": "Bullet text", "experienceId": "experience-id",
        "keywordsUsed": ["keyword1"], "relevanceScore": 8}}
    ]
  }},
  "keywordsUsed": ["keyword1"],
  "keywordsNotUsed": ["keyword2"]
}}"""
