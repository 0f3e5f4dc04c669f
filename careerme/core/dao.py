"""
Data access for resumes and their list-valued sections.

Uses the record store when credentials are configured and the in-process memory store
otherwise. Ownership is checked here: a resume tagged with one anonymous key is invisible
to callers presenting another.
"""

import json
import uuid
from typing import Any, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ValidationError

from .config import STORE_WRITE_BATCH_SIZE, get_replace_strategy, get_table_name, has_store_config
from .memory_store import get_memory_store, utc_now_iso
from .models import (
    BasicInfo,
    CvQa,
    DesiredConditions,
    EducationItem,
    ExperienceItem,
    HIGHEST_EDUCATIONS,
    ResumeStatus,
    ResumeUpdateRequest,
    WorkHistoryItem,
)
from .record_store import RecordStoreError, combine_filter_formulas, field_equals, get_store
from .schema import Record
from ..util.logging import logger

RESUME_FIELDS = [
    "draftId", "anonKey", "step1", "step2", "highestEducation",
    "qa", "selfPr", "summary", "desired", "selfpr_draft", "selfpr_final",
]
EDUCATION_FIELDS = ["draftId", "schoolName", "faculty", "start", "end", "present"]
EXPERIENCE_FIELDS = ["resumeId", "companyName", "jobTitle", "start", "end", "present", "current", "description"]
WORK_FIELDS = [
    "resumeId", "company", "division", "title", "startYm", "endYm",
    "roles", "industries", "qualifications", "description",
]
SELFPR_FIELD = {"draft": "selfpr_draft", "final": "selfpr_final"}


class ResumeNotFoundError(Exception):
    """No resume with this id is visible to the caller."""


def use_record_store() -> bool:
    return has_store_config()


def chunk(values: List[Any], size: int) -> List[List[Any]]:
    return [values[index:index + size] for index in range(0, len(values), size)]


def parse_json_field(raw: Any, model: Type[BaseModel]) -> Optional[BaseModel]:
    """Decode a JSON string column and validate it; bad data reads as missing."""
    if not isinstance(raw, str):
        return None
    try:
        return model.model_validate(json.loads(raw))
    except (ValueError, ValidationError) as e:
        logger.warning(f"Failed to parse JSON field as {model.__name__}: {e}")
        return None


def _text_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _resume_from_record(record: Record) -> Dict[str, Any]:
    fields = record.fields
    highest = fields.get("highestEducation")
    return {
        "record_id": record.id,
        "id": fields.get("draftId"),
        "anonKey": fields.get("anonKey"),
        "basicInfo": parse_json_field(fields.get("step1"), BasicInfo),
        "status": parse_json_field(fields.get("step2"), ResumeStatus),
        "highestEducation": highest if highest in HIGHEST_EDUCATIONS else None,
        "qa": parse_json_field(fields.get("qa"), CvQa),
        "selfPr": _text_or_none(fields.get("selfPr")),
        "summary": _text_or_none(fields.get("summary")),
        "desired": parse_json_field(fields.get("desired"), DesiredConditions),
        "selfpr_draft": _text_or_none(fields.get("selfpr_draft")) or "",
        "selfpr_final": _text_or_none(fields.get("selfpr_final")) or "",
    }


def _resume_from_memory(record: Dict[str, Any]) -> Dict[str, Any]:
    def model_or_none(model, value):
        return model.model_validate(value) if value else None

    return {
        "record_id": record["id"],
        "id": record["id"],
        "anonKey": record.get("anonKey"),
        "basicInfo": model_or_none(BasicInfo, record.get("basicInfo")),
        "status": model_or_none(ResumeStatus, record.get("status")),
        "highestEducation": record.get("highestEducation"),
        "qa": model_or_none(CvQa, record.get("qa")),
        "selfPr": record.get("selfPr"),
        "summary": record.get("summary"),
        "desired": model_or_none(DesiredConditions, record.get("desired")),
        "selfpr_draft": get_memory_store().read_ai_text(record["id"], "draft"),
        "selfpr_final": get_memory_store().read_ai_text(record["id"], "final"),
    }


# Resumes

def _find_resume_record(resume_id: Optional[str], anon_key: Optional[str]) -> Optional[Record]:
    filters = []
    if resume_id:
        filters.append(field_equals("draftId", resume_id))
    if anon_key:
        filters.append(field_equals("anonKey", anon_key))
    formula = combine_filter_formulas(*filters)
    if not formula:
        return None

    records = get_store().list_records(
        get_table_name("resumes"),
        filter_formula=formula,
        fields=RESUME_FIELDS,
        max_records=1,
    )
    if not records:
        return None

    record = records[0]
    # A resume tagged with a key is never handed to a caller without one
    if record.fields.get("anonKey") and record.fields.get("anonKey") != anon_key:
        return None
    return record


def find_resume(resume_id: Optional[str], anon_key: Optional[str]) -> Optional[Dict[str, Any]]:
    """Resume by draft id and/or anonymous key, or None if the caller cannot see it."""
    if not use_record_store():
        record = get_memory_store().find_resume(resume_id, anon_key)
        return _resume_from_memory(record) if record else None

    record = _find_resume_record(resume_id, anon_key)
    return _resume_from_record(record) if record else None


def require_resume(resume_id: str, anon_key: Optional[str]) -> Dict[str, Any]:
    resume = find_resume(resume_id, anon_key)
    if resume is None or resume["id"] != resume_id:
        raise ResumeNotFoundError(f"Resume {resume_id} not found")
    return resume


def resume_id_taken(resume_id: str) -> bool:
    """True when a resume with this draft id exists under any key."""
    if not use_record_store():
        return get_memory_store().has_resume(resume_id)

    records = get_store().list_records(
        get_table_name("resumes"),
        filter_formula=field_equals("draftId", resume_id),
        fields=["draftId"],
        max_records=1,
    )
    return bool(records)


def _section_fields(payload: ResumeUpdateRequest) -> Dict[str, Any]:
    """Store column values for the sections present in the payload."""
    fields: Dict[str, Any] = {}
    if payload.basicInfo is not None:
        fields["step1"] = payload.basicInfo.model_dump_json()
    if payload.status is not None:
        fields["step2"] = payload.status.model_dump_json()
    if payload.highestEducation is not None:
        fields["highestEducation"] = payload.highestEducation
    if payload.qa is not None:
        fields["qa"] = payload.qa.model_dump_json()
    if payload.selfPr is not None:
        fields["selfPr"] = payload.selfPr
    if payload.summary is not None:
        fields["summary"] = payload.summary
    if payload.desired is not None:
        fields["desired"] = payload.desired.model_dump_json()
    return fields


def save_resume(payload: ResumeUpdateRequest, anon_cookie: Optional[str]) -> Tuple[str, str]:
    """
    Create or update the caller's resume with the sections in payload.

    Returns (resume_id, anon_key). A payload with no sections and touch=false only
    resolves ids. Raises ResumeNotFoundError when payload.id belongs to another key.
    """
    existing = find_resume(payload.id, anon_cookie)
    if existing is None and payload.id and resume_id_taken(payload.id):
        raise ResumeNotFoundError(f"Resume {payload.id} not found")

    resume_id = (existing or {}).get("id") or payload.id or str(uuid.uuid4())
    anon_key = (existing or {}).get("anonKey") or anon_cookie or str(uuid.uuid4())

    sections = payload.section_names()
    if not sections and not payload.touch:
        return resume_id, anon_key

    now = utc_now_iso()

    if not use_record_store():
        memory = get_memory_store()
        record = memory.find_resume(resume_id, anon_key) or {
            "id": resume_id,
            "anonKey": anon_key,
            "createdAt": now,
        }
        record["updatedAt"] = now
        for name in sections:
            value = getattr(payload, name)
            record[name] = value.model_dump() if isinstance(value, BaseModel) else value
        memory.write_resume(record)
        return resume_id, anon_key

    fields = dict(_section_fields(payload), draftId=resume_id, anonKey=anon_key, updatedAt=now)
    table = get_table_name("resumes")
    if existing:
        get_store().update_records(table, [{"id": existing["record_id"], "fields": fields}])
    else:
        get_store().create_records(table, [{"fields": dict(fields, createdAt=now)}])

    logger.log_operation("resume.save", "success", {"resume_id": resume_id, "sections": sections,
                                                     "created": existing is None})
    return resume_id, anon_key


def update_resume_draft(record_id: str, fields: Dict[str, str]) -> None:
    """Write draft text columns (selfpr_draft, selfpr_final, summary_draft) on a resume record by store id."""
    if not record_id:
        raise ValueError("record_id is required to update a resume draft")
    if not fields:
        raise ValueError("At least one field must be provided to update a resume draft")

    records = get_store().update_records(get_table_name("resumes"), [{"id": record_id, "fields": fields}])
    if not records:
        raise RecordStoreError("Record store response did not include an updated record")


def get_resume_record(record_id: str) -> Optional[Record]:
    return get_store().get_record(get_table_name("resumes"), record_id)


# Self-PR texts

def load_selfpr_text(resume_id: str, anon_key: Optional[str], target: str) -> str:
    resume = find_resume(resume_id, anon_key)
    if resume is None or resume["id"] != resume_id:
        if not use_record_store():
            return get_memory_store().read_ai_text(resume_id, target)
        return ""
    return resume[SELFPR_FIELD[target]]


def save_selfpr_text(resume_id: str, anon_key: Optional[str], target: str, text: str) -> None:
    if not use_record_store():
        memory = get_memory_store()
        if memory.has_resume(resume_id):
            require_resume(resume_id, anon_key)
        memory.write_ai_text(resume_id, target, text)
        return

    resume = require_resume(resume_id, anon_key)
    update_resume_draft(resume["record_id"], {SELFPR_FIELD[target]: text})


# List-valued sections

def replace_owned_rows(table: str, owner_field: str, owner_id: str, rows: List[Dict[str, Any]]) -> int:
    """
    Replace every row of owner_id in table with rows.

    delete_first (default) deletes the old rows before creating the new ones; a failure in
    between leaves the owner with no rows. create_first writes the new rows first and removes
    the old ones afterwards, so a failure leaves duplicates instead of nothing.
    """
    store = get_store()
    existing = store.list_records(table, filter_formula=field_equals(owner_field, owner_id), fields=[owner_field])
    old_ids = [record.id for record in existing]

    now = utc_now_iso()
    payload = [{"fields": dict(row, **{owner_field: owner_id, "createdAt": now, "updatedAt": now})} for row in rows]

    def delete_old():
        for ids in chunk(old_ids, STORE_WRITE_BATCH_SIZE):
            store.delete_records(table, ids)

    def create_new():
        for group in chunk(payload, STORE_WRITE_BATCH_SIZE):
            store.create_records(table, group)

    if get_replace_strategy() == "create_first":
        create_new()
        delete_old()
    else:
        delete_old()
        create_new()

    logger.log_operation("rows.replace", "success", {"table": table, "owner": owner_id,
                                                      "deleted": len(old_ids), "created": len(rows)})
    return len(rows)


def _education_row(item: EducationItem) -> Dict[str, Any]:
    return {
        "schoolName": item.schoolName,
        "faculty": item.faculty or "",
        "start": item.start,
        "end": "" if item.present else item.end or "",
        "present": bool(item.present),
    }


def _normalize_education(row_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": row_id,
        "schoolName": fields.get("schoolName") or "",
        "faculty": fields.get("faculty") or "",
        "start": fields.get("start") or "",
        "end": fields.get("end") or "",
        "present": bool(fields.get("present")),
    }


def list_education(resume_id: str) -> List[Dict[str, Any]]:
    if not use_record_store():
        return [_normalize_education(row["id"], row) for row in get_memory_store().list_rows("education", resume_id)]

    records = get_store().list_records(
        get_table_name("education"),
        filter_formula=field_equals("draftId", resume_id),
        fields=EDUCATION_FIELDS,
    )
    return [_normalize_education(record.id, record.fields) for record in records]


def replace_education(resume_id: str, items: List[EducationItem]) -> int:
    rows = [_education_row(item) for item in items]
    if not use_record_store():
        return get_memory_store().replace_rows("education", resume_id, rows)
    return replace_owned_rows(get_table_name("education"), "draftId", resume_id, rows)


def _experience_row(item: ExperienceItem) -> Dict[str, Any]:
    return {
        "companyName": item.companyName,
        "jobTitle": item.jobTitle,
        "start": item.start,
        "end": "" if item.present else item.end or "",
        "present": bool(item.present),
        "current": bool(item.present),
        "description": item.description or "",
    }


def _normalize_experience(row_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    present = bool(fields.get("present", fields.get("current")))
    end = fields.get("end")
    return {
        "id": row_id,
        "companyName": _text_or_none(fields.get("companyName")) or "",
        "jobTitle": _text_or_none(fields.get("jobTitle")) or "",
        "start": _text_or_none(fields.get("start")) or "",
        "end": "" if present or not isinstance(end, str) else end,
        "present": present,
        "description": _text_or_none(fields.get("description")) or "",
    }


def list_experience(resume_id: str) -> List[Dict[str, Any]]:
    if not use_record_store():
        return [_normalize_experience(row["id"], row) for row in get_memory_store().list_rows("experience", resume_id)]

    records = get_store().list_records(
        get_table_name("experience"),
        filter_formula=field_equals("resumeId", resume_id),
        fields=EXPERIENCE_FIELDS,
    )
    return [_normalize_experience(record.id, record.fields) for record in records]


def replace_experience(resume_id: str, items: List[ExperienceItem]) -> int:
    rows = [_experience_row(item) for item in items]
    if not use_record_store():
        return get_memory_store().replace_rows("experience", resume_id, rows)
    return replace_owned_rows(get_table_name("experience"), "resumeId", resume_id, rows)


OWNER_FIELD = {"education": "draftId", "experience": "resumeId", "work": "resumeId"}


def row_owner(kind: str, row_id: str) -> Optional[str]:
    """Resume id a list row belongs to, or None if the row is not visible."""
    if not use_record_store():
        return get_memory_store().row_owner(kind, row_id)

    record = get_store().get_record(get_table_name(kind), row_id)
    if record is None:
        return None
    return _text_or_none(record.fields.get(OWNER_FIELD[kind]))


def delete_row(kind: str, row_id: str) -> None:
    if not use_record_store():
        get_memory_store().delete_row(kind, row_id)
        return
    get_store().delete_records(get_table_name(kind), [row_id])


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str) and item]


def _normalize_work(row_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": row_id,
        "resumeId": fields.get("resumeId") or "",
        "company": fields.get("company") or "",
        "division": fields.get("division") or "",
        "title": fields.get("title") or "",
        "startYm": fields.get("startYm") or "",
        "endYm": fields.get("endYm") or None,
        "roles": _string_list(fields.get("roles")),
        "industries": _string_list(fields.get("industries")),
        "qualifications": _string_list(fields.get("qualifications")),
        "description": fields.get("description") or "",
    }


def list_work(resume_id: str) -> List[Dict[str, Any]]:
    if not use_record_store():
        rows = get_memory_store().list_rows("work", resume_id)
        items = [_normalize_work(row["id"], row) for row in rows]
        return sorted(items, key=lambda item: item["startYm"], reverse=True)

    records = get_store().list_records(
        get_table_name("work"),
        filter_formula=field_equals("resumeId", resume_id),
        fields=WORK_FIELDS,
        sort=[{"field": "startYm", "direction": "desc"}],
    )
    return [_normalize_work(record.id, record.fields) for record in records]


def upsert_work(resume_id: str, row_id: Optional[str], data: WorkHistoryItem) -> Optional[str]:
    fields = dict(data.model_dump(), resumeId=resume_id)
    if not use_record_store():
        return get_memory_store().upsert_row("work", resume_id, row_id, fields)

    table = get_table_name("work")
    if row_id:
        updated = get_store().update_records(table, [{"id": row_id, "fields": fields}])
        return updated[0].id if updated else row_id

    created = get_store().create_records(table, [{"fields": fields}])
    return created[0].id if created else None


# Lookups

def list_lookups(lookup_type: Optional[str] = None) -> List[Dict[str, Any]]:
    if not use_record_store():
        return []

    records = get_store().list_records(
        get_table_name("lookups"),
        filter_formula=field_equals("type", lookup_type) if lookup_type else None,
        fields=["type", "value", "label", "order"],
        sort=[{"field": "order", "direction": "asc"}],
    )
    lookups = []
    for record in records:
        order = record.fields.get("order")
        lookups.append({
            "id": record.id,
            "type": record.fields.get("type") or "",
            "value": record.fields.get("value") or "",
            "label": record.fields.get("label") or record.fields.get("value") or "",
            "order": order if isinstance(order, (int, float)) and not isinstance(order, bool) else None,
        })
    return lookups
