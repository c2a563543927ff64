import logging

from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, Request, UploadFile
from slowapi import Limiter
from slowapi.util import get_remote_address

from api.dependencies import get_analyzer, get_cache, get_store
from config import settings
from models.requests import AnalysisRequest, JobDescriptionParseRequest
from models.responses import AnalysisResponse
from models.schemas.job_description import StructuredJobDescription
from services import pdf_parser
from services.cache import InMemoryAnalysisCache
from services.errors import AnalysisError, AnalysisTimeoutError, InvalidInputError, RateLimitedError
from services.job_parser import parse_job_description
from services.resume_analyzer import ResumeAnalyzer
from services.storage import AnalysisStore

logger = logging.getLogger(__name__)

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)

ALLOWED_EXTENSIONS = (".pdf", ".txt")


@router.get("/health")
async def health(cache: InMemoryAnalysisCache = Depends(get_cache)):
    return {
        "status": "ok",
        "gemini_configured": bool(settings.gemini_api_key),
        "cache_entries": len(cache),
    }


def _to_http_error(e: AnalysisError) -> HTTPException:
    """Map the user-facing pipeline errors to HTTP statuses."""
    if isinstance(e, InvalidInputError):
        return HTTPException(status_code=400, detail=e.user_message)
    if isinstance(e, RateLimitedError):
        retry_after = e.retry_after or settings.rate_limit_retry_after_seconds
        logger.warning("Request rate limited, retry after %ss", retry_after)
        return HTTPException(
            status_code=429,
            detail={"message": e.user_message, "retryAfter": retry_after},
            headers={"Retry-After": str(retry_after)},
        )
    if isinstance(e, AnalysisTimeoutError):
        logger.error("Request timed out: %s", e)
        return HTTPException(status_code=408, detail=e.user_message)
    logger.error("Upstream failure: %s", e)
    return HTTPException(status_code=502, detail=e.user_message)


async def _run_analysis(
    analyzer: ResumeAnalyzer,
    resume_text: str,
    job_description,
    user_id: str | None,
) -> AnalysisResponse:
    try:
        stored = await analyzer.analyze_and_store(resume_text, job_description, user_id=user_id)
    except AnalysisError as e:
        raise _to_http_error(e)
    return AnalysisResponse.from_stored(stored)


@router.post("/analyze", response_model=AnalysisResponse)
@limiter.limit("10/minute")
async def analyze(
    request: Request,
    resume_file: UploadFile | None = File(None),
    resume_text: str | None = Form(None),
    job_description: str | None = Form(None),
    user_id: str | None = Header(None, alias="X-User-Id"),
    analyzer: ResumeAnalyzer = Depends(get_analyzer),
):
    if job_description and len(job_description) > settings.max_job_description_chars:
        raise HTTPException(
            status_code=400,
            detail=f"Job description too long (max {settings.max_job_description_chars} chars)",
        )

    content = resume_text or ""
    if resume_file is not None:
        filename = resume_file.filename or ""
        if not filename.lower().endswith(ALLOWED_EXTENSIONS):
            raise HTTPException(status_code=400, detail="Only PDF and plain text files are accepted")

        data = await resume_file.read()
        max_bytes = settings.max_upload_size_mb * 1024 * 1024
        if len(data) > max_bytes:
            raise HTTPException(
                status_code=400,
                detail=f"File too large. Max size: {settings.max_upload_size_mb}MB",
            )

        try:
            content = pdf_parser.extract_resume_text(filename, data)
        except Exception:
            logger.exception("Could not extract text from %s", filename)
            raise HTTPException(status_code=400, detail="Could not parse resume file")

    return await _run_analysis(analyzer, content, job_description, user_id)


@router.post("/analyze/quick", response_model=AnalysisResponse)
@limiter.limit("10/minute")
async def analyze_quick(
    request: Request,
    body: AnalysisRequest,
    user_id: str | None = Header(None, alias="X-User-Id"),
    analyzer: ResumeAnalyzer = Depends(get_analyzer),
):
    jd = body.job_description
    if isinstance(jd, str) and len(jd) > settings.max_job_description_chars:
        raise HTTPException(
            status_code=400,
            detail=f"Job description too long (max {settings.max_job_description_chars} chars)",
        )
    return await _run_analysis(analyzer, body.resume_text, jd, user_id)


@router.post("/job-descriptions/parse", response_model=StructuredJobDescription)
@limiter.limit("10/minute")
async def parse_job(
    request: Request,
    body: JobDescriptionParseRequest,
    analyzer: ResumeAnalyzer = Depends(get_analyzer),
):
    try:
        return await parse_job_description(analyzer.fast, body.text, analyzer.settings)
    except AnalysisError as e:
        raise _to_http_error(e)


@router.get("/analyses/{analysis_id}", response_model=AnalysisResponse)
async def get_analysis(
    analysis_id: int,
    user_id: str | None = Header(None, alias="X-User-Id"),
    store: AnalysisStore = Depends(get_store),
):
    if not user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    stored = await store.get(analysis_id)
    if stored is None:
        raise HTTPException(status_code=404, detail="Analysis not found")
    if stored.user_id != user_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return AnalysisResponse.from_stored(stored)


@router.get("/analyses", response_model=list[AnalysisResponse])
async def list_analyses(
    user_id: str | None = Header(None, alias="X-User-Id"),
    store: AnalysisStore = Depends(get_store),
):
    if not user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    return [AnalysisResponse.from_stored(s) for s in await store.list_for_user(user_id)]
