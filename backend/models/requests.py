from pydantic import BaseModel, Field


class AnalyzeJobFitRequest(BaseModel):
    job_description: str = Field(..., description="Job description text pasted by the user")
    keyword_match_type: str = Field(
        "exact", description="'exact' keeps keywords verbatim, 'flexible' accepts word variations"
    )
