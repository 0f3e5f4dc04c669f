"""
Resume data routes: the resume itself, its list-valued sections and lookup values.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, HTTPException, Request, Response

from .schemas import (
    EducationListRequest,
    ErrorResponse,
    ExperienceListRequest,
    ResumeResponse,
    WorkUpsertRequest,
)
from ..core import dao
from ..core.models import ResumeUpdateRequest
from ..util.anon import generate_anon_key, read_anon_key, set_anon_cookie

router = APIRouter(
    prefix="/api/data",
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)


def _require_param(value: Optional[str], name: str) -> str:
    if not value:
        raise HTTPException(status_code=400, detail=f"{name} is required")
    return value


def _require_row_access(kind: str, row_id: str, anon_key: Optional[str], resume_id: Optional[str] = None) -> str:
    """Resume id owning the row; 404 unless the caller owns that resume."""
    owner = dao.row_owner(kind, row_id)
    if owner is None or (resume_id and owner != resume_id):
        raise HTTPException(status_code=404, detail="Record not found")
    dao.require_resume(owner, anon_key)
    return owner


# Resume

@router.get("/resume", response_model=ResumeResponse)
def get_resume(request: Request, response: Response, id: Optional[str] = None):
    anon_cookie = read_anon_key(request)
    resume = dao.find_resume(id, anon_cookie)

    anon_key = (resume or {}).get("anonKey") or anon_cookie or generate_anon_key()
    set_anon_cookie(response, anon_key)

    if resume is None:
        return ResumeResponse(id=id)

    return ResumeResponse(
        id=resume["id"] or id,
        basicInfo=resume["basicInfo"],
        status=resume["status"],
        highestEducation=resume["highestEducation"],
        qa=resume["qa"],
        selfPr=resume["selfPr"],
        summary=resume["summary"],
        desired=resume["desired"],
    )


@router.post("/resume")
def save_resume(payload: ResumeUpdateRequest, request: Request, response: Response):
    resume_id, anon_key = dao.save_resume(payload, read_anon_key(request))
    set_anon_cookie(response, anon_key)
    return {"id": resume_id}


@router.get("/resumes/{record_id}")
def get_resume_record(record_id: str, request: Request):
    """Raw resume record by store id. Null when the store is not configured."""
    if not dao.use_record_store():
        return None

    record = dao.get_resume_record(record_id)
    owner_key = record.fields.get("anonKey") if record else None
    if record is None or (owner_key and owner_key != read_anon_key(request)):
        raise HTTPException(status_code=404, detail="Record not found")

    return {"ok": True, "id": record.id, "fields": record.fields}


# Education

@router.get("/education")
def list_education(request: Request, draftId: Optional[str] = None):
    resume_id = _require_param(draftId, "draftId")
    dao.require_resume(resume_id, read_anon_key(request))
    return {"ok": True, "items": dao.list_education(resume_id)}


@router.post("/education")
def replace_education(payload: EducationListRequest, request: Request):
    dao.require_resume(payload.draftId, read_anon_key(request))
    count = dao.replace_education(payload.draftId, payload.items)
    return {"ok": True, "count": count}


@router.delete("/education")
def delete_education(request: Request, id: Optional[str] = None, body: Optional[Dict[str, Any]] = Body(default=None)):
    row_id = id
    if not row_id and isinstance(body, dict) and isinstance(body.get("id"), str):
        row_id = body["id"]
    row_id = _require_param(row_id, "id")

    _require_row_access("education", row_id, read_anon_key(request))
    dao.delete_row("education", row_id)
    return {"ok": True}


# Experience

@router.get("/experience")
def list_experience(request: Request, resumeId: Optional[str] = None, draftId: Optional[str] = None):
    resume_id = _require_param(resumeId or draftId, "resumeId")
    dao.require_resume(resume_id, read_anon_key(request))
    return {"ok": True, "items": dao.list_experience(resume_id)}


@router.post("/experience")
def replace_experience(payload: ExperienceListRequest, request: Request):
    dao.require_resume(payload.resumeId, read_anon_key(request))
    count = dao.replace_experience(payload.resumeId, payload.items)
    return {"ok": True, "count": count}


# Work history

@router.get("/work")
def list_work(request: Request, resumeId: Optional[str] = None):
    resume_id = _require_param(resumeId, "resumeId")
    dao.require_resume(resume_id, read_anon_key(request))
    return {"ok": True, "items": dao.list_work(resume_id)}


@router.post("/work")
def upsert_work(payload: WorkUpsertRequest, request: Request):
    anon_key = read_anon_key(request)
    dao.require_resume(payload.resumeId, anon_key)
    if payload.id:
        _require_row_access("work", payload.id, anon_key, resume_id=payload.resumeId)

    row_id = dao.upsert_work(payload.resumeId, payload.id, payload.data)
    return {"ok": True, "id": row_id}


@router.delete("/work")
def delete_work(request: Request, id: Optional[str] = None):
    row_id = _require_param(id, "id")
    _require_row_access("work", row_id, read_anon_key(request))
    dao.delete_row("work", row_id)
    return {"ok": True}


# Lookups

@router.get("/lookups")
def list_lookups(type: Optional[str] = None):
    records = dao.list_lookups(type)
    options = None
    if type == "certifications":
        options = [
            {"value": record["value"], "label": record["label"]}
            for record in records
            if record["value"] and record["label"]
        ]
    return {"ok": True, "records": records, "options": options}
