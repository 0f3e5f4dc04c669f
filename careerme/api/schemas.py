"""
Request/response models for the wizard API.
Section models live in core.models; these wrap them for the routes.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..core.models import (
    BasicInfo,
    CvQa,
    DesiredConditions,
    EducationItem,
    EventProposal,
    ExperienceItem,
    ResumeStatus,
    ScheduleEvent,
    WorkHistoryItem,
    free_text,
    normalize_timestamp,
    strip_text,
)


class ResumeResponse(BaseModel):
    id: Optional[str]
    basicInfo: Optional[BasicInfo] = None
    status: Optional[ResumeStatus] = None
    highestEducation: Optional[str] = None
    qa: Optional[CvQa] = None
    selfPr: Optional[str] = None
    summary: Optional[str] = None
    desired: Optional[DesiredConditions] = None


# /api/data/education, /api/data/experience, /api/data/work

class EducationListRequest(BaseModel):
    draftId: str = Field(min_length=1)
    items: List[EducationItem] = Field(min_length=1)


class ExperienceListRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    resumeId: str = Field(min_length=1)
    items: List[ExperienceItem]

    @model_validator(mode='before')
    @classmethod
    def accept_draft_id(cls, data):
        if isinstance(data, dict) and not data.get("resumeId") and data.get("draftId"):
            data = dict(data, resumeId=data["draftId"])
        return data


class WorkUpsertRequest(BaseModel):
    id: Optional[str] = None
    resumeId: str
    data: WorkHistoryItem

    @field_validator('id', mode='before')
    @classmethod
    def blank_id_is_none(cls, v):
        v = strip_text(v)
        return v or None

    @field_validator('resumeId', mode='before')
    @classmethod
    def resume_id_required(cls, v):
        v = strip_text(v)
        if not isinstance(v, str) or not v:
            raise ValueError('履歴書IDが必要です')
        return v


# /api/ai/selfpr

class SelfPrBase(BaseModel):
    resumeId: str = Field(min_length=1)
    target: Literal["draft", "final"]


class SelfPrGenerateRequest(SelfPrBase):
    action: Literal["generate"]
    qa: CvQa
    draft: Optional[str] = Field(default=None, max_length=2000)


class SelfPrSaveRequest(SelfPrBase):
    action: Literal["save"]
    text: str

    @field_validator('text')
    @classmethod
    def text_valid(cls, v):
        return free_text(v)


class SelfPrLoadRequest(SelfPrBase):
    action: Literal["load"]


SelfPrRequest = Union[SelfPrGenerateRequest, SelfPrSaveRequest, SelfPrLoadRequest]


class SelfPrData(BaseModel):
    target: Literal["draft", "final"]
    text: str
    fallback: Optional[bool] = None
    usage: Optional[Dict[str, int]] = None


class SelfPrResponse(BaseModel):
    success: bool = True
    correlationId: str
    data: SelfPrData


# /api/ai/summary, /api/ai/resume

class TextGenerationRequest(BaseModel):
    resumeId: str = Field(min_length=1)
    locale: Optional[str] = Field(default=None, min_length=2, max_length=5)
    role: Optional[str] = Field(default=None, min_length=1)
    years: Optional[float] = Field(default=None, ge=0)
    headlineKeywords: Optional[List[str]] = Field(default=None, max_length=15)
    extraNotes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator('headlineKeywords')
    @classmethod
    def keywords_not_empty(cls, v):
        if v is not None and any(not item for item in v):
            raise ValueError('keywords cannot be empty')
        return v


class SummaryResponse(BaseModel):
    ok: bool = True
    text: str
    saved: bool
    fallback: bool = False
    resumeId: str
    warn: Optional[str] = None


class ResumeTextResponse(BaseModel):
    content: str
    fallback: bool = False


# /api/prints

class PrintRequest(BaseModel):
    model_config = ConfigDict(extra='allow')

    resumeId: str = Field(min_length=1)
    template: str = Field(min_length=1)


# /api/schedule

class EventListResponse(BaseModel):
    items: List[ScheduleEvent]
    correlationId: str


class EventResponse(BaseModel):
    event: ScheduleEvent
    correlationId: str


class EventCreatedResponse(BaseModel):
    eventId: str
    correlationId: str


class ScheduleOkResponse(BaseModel):
    ok: bool = True
    correlationId: str


class SuggestScheduleRequest(BaseModel):
    seed: Optional[str] = Field(default=None, max_length=500)
    windowStart: Optional[str] = None
    windowEnd: Optional[str] = None

    @field_validator('windowStart', 'windowEnd')
    @classmethod
    def timestamp_format(cls, v):
        return normalize_timestamp(v)


class SuggestScheduleResponse(BaseModel):
    proposals: List[EventProposal]
    correlationId: str


class CalendarTokenResponse(BaseModel):
    token: str
    correlationId: str


class NotifyResponse(BaseModel):
    sent: int
    correlationId: str


# Errors and health

class ErrorResponse(BaseModel):
    code: str
    message: str
    correlationId: str
    details: Optional[Any] = None


class HealthResponse(BaseModel):
    ok: bool
    env: str
    time: datetime
