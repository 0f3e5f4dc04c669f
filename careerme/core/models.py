"""
Section models shared by the data layer and the API: resume sections and calendar events.
Validation messages are user-facing (Japanese), matching the wizard forms.
"""

from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..util.dates import YEAR_MONTH_PATTERN, is_year_month_order_valid, parse_iso_datetime, to_utc_iso

CURRENT_YEAR = date.today().year

EDU_STATUSES = ["在学中", "卒業済み"]
JOIN_TIMINGS = ["すぐ", "3ヶ月以内", "半年以内", "1年以内", "いい所があれば"]
JOB_CHANGE_COUNTS = [str(n) for n in range(1, 11)] + ["10回以上"]
HIGHEST_EDUCATIONS = ["中学校", "高等学校", "専門学校", "高等専門学校", "短期大学", "大学", "大学院", "その他"]


def strip_text(v):
    return v.strip() if isinstance(v, str) else v


def _check_year_month(v: Optional[str], allow_blank: bool) -> Optional[str]:
    if v is None or (allow_blank and v == ""):
        return v
    if not YEAR_MONTH_PATTERN.match(v):
        raise ValueError('YYYY-MM形式で入力してください')
    return v


class Dob(BaseModel):
    year: int
    month: int
    day: int

    @field_validator('year', 'month', 'day', mode='before')
    @classmethod
    def digits_only(cls, v):
        if isinstance(v, str):
            v = v.strip()
            if not v:
                raise ValueError('生年月日を選択してください')
            if not v.isdigit():
                raise ValueError('生年月日は数字で入力してください')
            return int(v)
        if isinstance(v, bool) or not isinstance(v, int):
            raise ValueError('生年月日は数字で入力してください')
        return v

    @field_validator('year')
    @classmethod
    def year_in_range(cls, v):
        if not 1900 <= v <= CURRENT_YEAR:
            raise ValueError(f'1900年から{CURRENT_YEAR}年までを選択してください')
        return v

    @field_validator('month')
    @classmethod
    def month_in_range(cls, v):
        if not 1 <= v <= 12:
            raise ValueError('1月から12月の範囲で選択してください')
        return v

    @field_validator('day')
    @classmethod
    def day_in_range(cls, v):
        if not 1 <= v <= 31:
            raise ValueError('1日から31日の範囲で選択してください')
        return v

    @model_validator(mode='after')
    def date_must_exist(self):
        try:
            date(self.year, self.month, self.day)
        except ValueError:
            raise ValueError('存在しない日付です')
        return self


class BasicInfo(BaseModel):
    lastName: str
    firstName: str
    dob: Dob
    gender: Literal["male", "female", "none"] = "none"

    @field_validator('lastName', 'firstName', mode='before')
    @classmethod
    def name_must_not_be_empty(cls, v):
        v = strip_text(v)
        if not isinstance(v, str) or not v:
            raise ValueError('氏名を入力してください')
        if len(v) > 100:
            raise ValueError('100文字以内で入力してください')
        return v


class ResumeStatus(BaseModel):
    eduStatus: str
    joinTiming: str
    jobChangeCount: str

    @field_validator('eduStatus')
    @classmethod
    def edu_status_must_be_valid(cls, v):
        if v not in EDU_STATUSES:
            raise ValueError(f'eduStatus must be one of: {EDU_STATUSES}')
        return v

    @field_validator('joinTiming')
    @classmethod
    def join_timing_must_be_valid(cls, v):
        if v not in JOIN_TIMINGS:
            raise ValueError(f'joinTiming must be one of: {JOIN_TIMINGS}')
        return v

    @field_validator('jobChangeCount', mode='before')
    @classmethod
    def job_change_count_must_be_valid(cls, v):
        v = str(v) if isinstance(v, int) and not isinstance(v, bool) else v
        if v not in JOB_CHANGE_COUNTS:
            raise ValueError(f'jobChangeCount must be one of: {JOB_CHANGE_COUNTS}')
        return v


class EducationItem(BaseModel):
    schoolName: str
    faculty: str = ""
    start: str
    end: str = ""
    present: bool = False

    @field_validator('schoolName', mode='before')
    @classmethod
    def school_name_required(cls, v):
        v = strip_text(v)
        if not isinstance(v, str) or not v:
            raise ValueError('学校名を入力してください')
        if len(v) > 120:
            raise ValueError('120文字以内で入力してください')
        return v

    @field_validator('faculty', mode='before')
    @classmethod
    def faculty_length(cls, v):
        v = strip_text(v) or ""
        if len(v) > 120:
            raise ValueError('120文字以内で入力してください')
        return v

    @field_validator('start')
    @classmethod
    def start_format(cls, v):
        return _check_year_month(v, allow_blank=False)

    @field_validator('end', mode='before')
    @classmethod
    def end_format(cls, v):
        return _check_year_month(v or "", allow_blank=True)

    @model_validator(mode='after')
    def end_matches_present(self):
        if self.present and self.end:
            raise ValueError('在学中の場合は終了年月を空にしてください')
        if not self.present and not is_year_month_order_valid(self.start, self.end):
            raise ValueError('終了年月は開始年月以降を入力してください')
        return self


class ExperienceItem(BaseModel):
    companyName: str
    jobTitle: str = ""
    start: str
    end: str = ""
    present: bool = False
    description: str = ""

    @field_validator('companyName', mode='before')
    @classmethod
    def company_required(cls, v):
        v = strip_text(v)
        if not isinstance(v, str) or not v:
            raise ValueError('会社名を入力してください')
        if len(v) > 120:
            raise ValueError('120文字以内で入力してください')
        return v

    @field_validator('jobTitle', mode='before')
    @classmethod
    def job_title_length(cls, v):
        v = strip_text(v) or ""
        if len(v) > 120:
            raise ValueError('120文字以内で入力してください')
        return v

    @field_validator('description', mode='before')
    @classmethod
    def description_length(cls, v):
        v = v or ""
        if len(v) > 1000:
            raise ValueError('1000文字以内で入力してください')
        return v

    @field_validator('start')
    @classmethod
    def start_format(cls, v):
        return _check_year_month(v, allow_blank=False)

    @field_validator('end', mode='before')
    @classmethod
    def end_format(cls, v):
        return _check_year_month(v or "", allow_blank=True)

    @model_validator(mode='after')
    def end_matches_present(self):
        if self.present and self.end:
            raise ValueError('在職中の場合は終了年月を空にしてください')
        if not self.present and not is_year_month_order_valid(self.start, self.end):
            raise ValueError('終了年月は開始年月以降を入力してください')
        return self


class WorkHistoryItem(BaseModel):
    company: str
    division: str = ""
    title: str = ""
    startYm: str
    endYm: Optional[str] = None
    roles: List[str] = Field(default_factory=list)
    industries: List[str] = Field(default_factory=list)
    qualifications: List[str] = Field(default_factory=list)
    description: str = Field(default="", max_length=2000)

    @field_validator('company', mode='before')
    @classmethod
    def company_required(cls, v):
        v = strip_text(v)
        if not isinstance(v, str) or not v:
            raise ValueError('会社名を入力してください')
        return v

    @field_validator('startYm')
    @classmethod
    def start_format(cls, v):
        return _check_year_month(v, allow_blank=False)

    @field_validator('endYm', mode='before')
    @classmethod
    def end_format(cls, v):
        return _check_year_month(v or None, allow_blank=True)

    @field_validator('roles', 'industries', 'qualifications', mode='before')
    @classmethod
    def drop_blank_entries(cls, v):
        if v is None:
            return []
        return [item.strip() for item in v if isinstance(item, str) and item.strip()]

    @model_validator(mode='after')
    def end_after_start(self):
        if not is_year_month_order_valid(self.startYm, self.endYm):
            raise ValueError('終了年月は開始年月以降を入力してください')
        return self


class CvQa(BaseModel):
    q1: str
    q2: str
    q3: str
    q4: str

    @field_validator('q1', 'q2', 'q3', 'q4', mode='before')
    @classmethod
    def answer_must_not_be_empty(cls, v):
        v = strip_text(v)
        if not isinstance(v, str) or not v:
            raise ValueError('回答を入力してください')
        if len(v) > 1000:
            raise ValueError('1000文字以内で入力してください')
        return v


def free_text(v, limit: int = 2000):
    if not isinstance(v, str) or not v.strip():
        raise ValueError('本文を入力してください')
    if len(v) > limit:
        raise ValueError(f'{limit}文字以内で入力してください')
    return v


class DesiredConditions(BaseModel):
    roles: List[str] = Field(default_factory=list)
    industries: List[str] = Field(default_factory=list)
    locations: List[str] = Field(default_factory=list)

    @field_validator('roles', 'industries', 'locations', mode='before')
    @classmethod
    def drop_blank_entries(cls, v):
        if v is None:
            return []
        return [item.strip() for item in v if isinstance(item, str) and item.strip()]


# Resume writes

class ResumeUpdateRequest(BaseModel):
    id: Optional[str] = Field(default=None, min_length=1)
    basicInfo: Optional[BasicInfo] = None
    status: Optional[ResumeStatus] = None
    highestEducation: Optional[str] = None
    qa: Optional[CvQa] = None
    selfPr: Optional[str] = None
    summary: Optional[str] = None
    desired: Optional[DesiredConditions] = None
    touch: bool = False

    @field_validator('highestEducation')
    @classmethod
    def highest_education_must_be_valid(cls, v):
        if v is not None and v not in HIGHEST_EDUCATIONS:
            raise ValueError(f'highestEducation must be one of: {HIGHEST_EDUCATIONS}')
        return v

    @field_validator('selfPr', 'summary')
    @classmethod
    def text_sections_valid(cls, v):
        return v if v is None else free_text(v)

    def section_names(self) -> List[str]:
        return [
            name for name in ("basicInfo", "status", "highestEducation", "qa", "selfPr", "summary", "desired")
            if name in self.model_fields_set and getattr(self, name) is not None
        ]

    @model_validator(mode='after')
    def must_have_updates(self):
        if not self.touch and not self.section_names():
            raise ValueError('更新内容がありません')
        return self



# Calendar events

EventStatus = Literal["scheduled", "done", "cancelled"]
EventSource = Literal["manual", "ai", "system"]


def normalize_timestamp(v):
    """Normalize an ISO-8601 timestamp to UTC with millisecond precision."""
    if v is None:
        return v
    try:
        return to_utc_iso(v)
    except (TypeError, ValueError):
        raise ValueError('日時はISO 8601形式で入力してください')


def _check_event_order(starts_at: Optional[str], ends_at: Optional[str]) -> None:
    if starts_at and ends_at and parse_iso_datetime(ends_at) < parse_iso_datetime(starts_at):
        raise ValueError('終了日時は開始日時以降を入力してください')


class ScheduleEvent(BaseModel):
    id: str
    companyId: str
    title: str
    description: Optional[str] = None
    startsAt: str
    endsAt: str
    timezone: Optional[str] = None
    location: Optional[str] = None
    attendees: Optional[List[str]] = None
    status: EventStatus = "scheduled"
    source: EventSource = "manual"
    icalUid: str
    lastNotifiedAt: Optional[str] = None


class CreateEventRequest(BaseModel):
    title: str
    startsAt: str
    endsAt: str
    description: Optional[str] = Field(default=None, max_length=2000)
    timezone: Optional[str] = None
    location: Optional[str] = Field(default=None, max_length=200)
    attendees: Optional[List[str]] = None

    @field_validator('title', mode='before')
    @classmethod
    def title_required(cls, v):
        v = strip_text(v)
        if not isinstance(v, str) or not v:
            raise ValueError('タイトルを入力してください')
        if len(v) > 200:
            raise ValueError('200文字以内で入力してください')
        return v

    @field_validator('startsAt', 'endsAt')
    @classmethod
    def timestamp_format(cls, v):
        return normalize_timestamp(v)

    @model_validator(mode='after')
    def ends_after_start(self):
        _check_event_order(self.startsAt, self.endsAt)
        return self


class UpdateEventRequest(BaseModel):
    title: Optional[str] = None
    startsAt: Optional[str] = None
    endsAt: Optional[str] = None
    description: Optional[str] = Field(default=None, max_length=2000)
    timezone: Optional[str] = None
    location: Optional[str] = Field(default=None, max_length=200)
    attendees: Optional[List[str]] = None
    status: Optional[EventStatus] = None
    lastNotifiedAt: Optional[str] = None

    @field_validator('title', mode='before')
    @classmethod
    def title_not_blank(cls, v):
        if v is None:
            return v
        v = strip_text(v)
        if not isinstance(v, str) or not v:
            raise ValueError('タイトルを入力してください')
        return v

    @field_validator('startsAt', 'endsAt', 'lastNotifiedAt')
    @classmethod
    def timestamp_format(cls, v):
        return normalize_timestamp(v)

    @model_validator(mode='after')
    def ends_after_start(self):
        _check_event_order(self.startsAt, self.endsAt)
        return self


class EventProposal(BaseModel):
    title: str
    description: Optional[str] = None
    startsAt: str
    endsAt: str
    timezone: Optional[str] = None
    location: Optional[str] = None
    attendees: List[str] = Field(default_factory=list)
