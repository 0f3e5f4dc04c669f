"""
AI-assisted text routes: self-PR, career summary and resume body.

Generation failures never block the wizard: the route answers 200 with a canned
template and fallback=true. Storage failures on save/load are surfaced.
"""

from typing import Annotated, Optional, Tuple

from fastapi import APIRouter, Body, HTTPException, Request
from pydantic import ValidationError

from .errors import error_response, get_correlation_id
from .schemas import (
    ErrorResponse,
    ResumeTextResponse,
    SelfPrData,
    SelfPrGenerateRequest,
    SelfPrLoadRequest,
    SelfPrRequest,
    SelfPrResponse,
    SelfPrSaveRequest,
    SummaryResponse,
    TextGenerationRequest,
)
from ..core import dao
from ..core.config import AI_RATE_LIMIT, AI_RATE_LIMIT_WINDOW_MS
from ..core.generation import GenerationError, get_generation_client
from ..core.models import ResumeUpdateRequest
from ..core.prompts import (
    build_resume_prompt,
    build_selfpr_prompt,
    build_summary_prompt,
    resume_fallback_text,
    selfpr_fallback_text,
    summary_fallback_text,
)
from ..core.rate_limit import consume_rate_limit
from ..core.record_store import RecordStoreError
from ..util.anon import rate_limit_key, read_anon_key
from ..util.logging import logger

router = APIRouter(
    prefix="/api/ai",
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
)


def _check_rate_limit(request: Request) -> None:
    """Raise 429 with retry-after once the caller exhausts the generate window."""
    key = rate_limit_key(request)
    result = consume_rate_limit(key, AI_RATE_LIMIT, AI_RATE_LIMIT_WINDOW_MS)
    if not result.limited:
        return

    logger.log_rate_limited(key, result.retry_after_ms, get_correlation_id(request))
    retry_after_seconds = max(1, -(-(result.retry_after_ms or 0) // 1000))
    raise HTTPException(
        status_code=429,
        detail="リクエストが集中しています。時間をおいて再試行してください。",
        headers={"retry-after": str(retry_after_seconds)},
    )


def _generate(request: Request, prompt: str, temperature: float, max_output_tokens: int) -> Tuple[Optional[str], Optional[int]]:
    """Generated text and token count, or (None, None) when generation failed."""
    correlation_id = get_correlation_id(request)
    try:
        result = get_generation_client().generate(
            prompt,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            correlation_id=correlation_id,
        )
    except GenerationError as e:
        logger.warning(f"generation failed ({e.kind}, status={e.status}): {e}")
        return None, None
    return result.text, result.tokens


@router.post("/selfpr", response_model=SelfPrResponse)
def selfpr(request: Request, payload: Annotated[SelfPrRequest, Body(discriminator="action")]):
    correlation_id = get_correlation_id(request)
    anon_key = read_anon_key(request)

    if isinstance(payload, SelfPrLoadRequest):
        try:
            text = dao.load_selfpr_text(payload.resumeId, anon_key, payload.target)
        except RecordStoreError as e:
            logger.log_api_error(request.url.path, e, correlation_id)
            return error_response(request, 502, "データ取得に失敗しました。時間をおいて再試行してください。",
                                  code="load_failed")
        return SelfPrResponse(correlationId=correlation_id,
                              data=SelfPrData(target=payload.target, text=text, fallback=False))

    if isinstance(payload, SelfPrSaveRequest):
        try:
            dao.save_selfpr_text(payload.resumeId, anon_key, payload.target, payload.text)
        except RecordStoreError as e:
            logger.log_api_error(request.url.path, e, correlation_id)
            return error_response(request, 502, "保存に失敗しました。時間をおいて再試行してください。",
                                  code="save_failed")
        return SelfPrResponse(correlationId=correlation_id,
                              data=SelfPrData(target=payload.target, text=payload.text))

    if not isinstance(payload, SelfPrGenerateRequest):
        raise HTTPException(status_code=400, detail=f"Unsupported action: {getattr(payload, 'action', None)}")

    _check_rate_limit(request)

    prompt = build_selfpr_prompt(payload.qa, experience_summary=payload.draft)
    text, tokens = _generate(request, prompt, temperature=0.4, max_output_tokens=768)
    fallback = not text or not text.strip()
    if fallback:
        text = selfpr_fallback_text(payload.qa)

    usage = {"totalTokens": tokens} if tokens is not None else None
    return SelfPrResponse(
        correlationId=correlation_id,
        data=SelfPrData(target=payload.target, text=text, fallback=fallback, usage=usage),
    )


@router.post("/summary", response_model=SummaryResponse)
def summary(payload: TextGenerationRequest, request: Request):
    _check_rate_limit(request)

    prompt = build_summary_prompt(
        locale=payload.locale or "ja",
        role=payload.role,
        years=payload.years,
        headline_keywords=payload.headlineKeywords,
        extra_notes=payload.extraNotes,
    )
    text, _ = _generate(request, prompt, temperature=0.6, max_output_tokens=512)
    fallback = not text
    if fallback:
        text = summary_fallback_text(role=payload.role, years=payload.years,
                                     headline_keywords=payload.headlineKeywords)

    saved = False
    warn = None
    try:
        dao.require_resume(payload.resumeId, read_anon_key(request))
        dao.save_resume(ResumeUpdateRequest(id=payload.resumeId, summary=text), read_anon_key(request))
        saved = True
    except dao.ResumeNotFoundError:
        warn = "Resume not found; summary was not saved"
    except (RecordStoreError, ValidationError) as e:
        logger.log_api_error(request.url.path, e, get_correlation_id(request))
        warn = str(e)

    return SummaryResponse(text=text, saved=saved, fallback=fallback, resumeId=payload.resumeId, warn=warn)


@router.post("/resume", response_model=ResumeTextResponse)
def resume_text(payload: TextGenerationRequest, request: Request):
    _check_rate_limit(request)

    prompt = build_resume_prompt(
        locale=payload.locale or "ja",
        role=payload.role,
        years=payload.years,
        headline_keywords=payload.headlineKeywords,
        extra_notes=payload.extraNotes,
    )
    text, _ = _generate(request, prompt, temperature=0.6, max_output_tokens=1024)
    if not text:
        return ResumeTextResponse(
            content=resume_fallback_text(role=payload.role, years=payload.years,
                                         headline_keywords=payload.headlineKeywords),
            fallback=True,
        )
    return ResumeTextResponse(content=text)
