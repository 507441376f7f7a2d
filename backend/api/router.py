from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from api.dependencies import get_current_user, get_orchestrator
from models.requests import AnalyzeJobFitRequest
from models.responses import ErrorResponse, FitAnalysisResponse
from services.completion_client import get_completion_service
from services.pipeline.orchestrator import PipelineOrchestrator

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)

_ERROR_RESPONSES = {
    status: {"model": ErrorResponse}
    for status in (400, 401, 403, 502, 503)
}


@router.get("/health")
async def health():
    return {
        "status": "ok",
        "completion_configured": get_completion_service().is_configured,
    }


@router.post("/analyze-job-fit", response_model=FitAnalysisResponse, responses=_ERROR_RESPONSES)
@limiter.limit("10/minute")
async def analyze_job_fit(
    request: Request,
    body: AnalyzeJobFitRequest,
    user_id: str = Depends(get_current_user),
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.run(user_id, body.job_description, body.keyword_match_type)
