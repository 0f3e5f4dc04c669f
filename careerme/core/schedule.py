"""
Calendar events for company schedules, kept in the record store.

Events are never hard-deleted: cancelling sets status=cancelled. Once an event has been
created it is given an iCalendar UID derived from its record id, and that UID is what
calendar clients see in the ICS feeds.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from pydantic import ValidationError

from .config import (
    ICAL_UID_DOMAIN,
    NOTIFY_WINDOW_END_MINUTES,
    NOTIFY_WINDOW_START_MINUTES,
    SCHEDULE_PAGE_SIZE,
    get_table_name,
)
from .models import CreateEventRequest, EventProposal, ScheduleEvent, UpdateEventRequest
from .record_store import (
    RecordStoreError,
    combine_filter_formulas,
    escape_formula_value,
    field_equals,
    get_store,
)
from .schema import Record
from ..util.dates import parse_iso_datetime, to_utc_iso
from ..util.logging import logger

EVENT_FIELDS = [
    "companyId",
    "title",
    "description",
    "startsAt",
    "endsAt",
    "timezone",
    "location",
    "attendees",
    "status",
    "source",
    "icalUid",
    "lastNotifiedAt",
]
ICS_PRODUCT_ID = "-//careerme//schedule//EN"


class EventNotFoundError(Exception):
    """No event with this id is visible in the current environment."""


class CalendarTokenError(Exception):
    """The calendar token does not belong to any company."""


def ical_uid(record_id: str) -> str:
    return f"{record_id}@{ICAL_UID_DOMAIN}"


def _event_from_record(record: Record) -> Optional[ScheduleEvent]:
    """Typed event from a stored record; rows that fail validation read as missing."""
    fields = record.fields
    data = {name: fields[name] for name in EVENT_FIELDS if fields.get(name) is not None}
    data.update(
        id=record.id,
        status=fields.get("status") or "scheduled",
        source=fields.get("source") or "manual",
        icalUid=fields.get("icalUid") or ical_uid(record.id),
    )
    try:
        return ScheduleEvent.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Skipping malformed calendar event {record.id}: {e}")
        return None


# Events

def list_events(
    starts_after: Optional[str] = None,
    starts_before: Optional[str] = None,
    status: Optional[str] = None,
    company_id: Optional[str] = None,
    limit: Optional[int] = None,
) -> List[ScheduleEvent]:
    """
    Events ordered by start time.

    starts_after / starts_before are exclusive bounds on startsAt. status "all" or None
    does not filter. limit caps both the page size and the number of events returned.
    """
    filters = []
    if starts_after:
        filters.append(f"IS_AFTER({{startsAt}}, '{escape_formula_value(starts_after)}')")
    if starts_before:
        filters.append(f"IS_BEFORE({{startsAt}}, '{escape_formula_value(starts_before)}')")
    if status and status != "all":
        filters.append(field_equals("status", status))
    if company_id:
        filters.append(field_equals("companyId", company_id))

    records = get_store().list_records(
        get_table_name("calendar_events"),
        filter_formula=combine_filter_formulas(*filters),
        fields=EVENT_FIELDS,
        page_size=limit or SCHEDULE_PAGE_SIZE,
        max_records=limit,
        sort=[{"field": "startsAt", "direction": "asc"}],
    )
    return [event for event in map(_event_from_record, records) if event is not None]


def get_event(event_id: str) -> Optional[ScheduleEvent]:
    record = get_store().get_record(get_table_name("calendar_events"), event_id)
    return _event_from_record(record) if record else None


def require_event(event_id: str) -> ScheduleEvent:
    event = get_event(event_id)
    if event is None:
        raise EventNotFoundError(f"Event {event_id} not found")
    return event


def create_event(company_id: str, payload: CreateEventRequest) -> str:
    """Create a scheduled event and stamp its iCalendar UID. Returns the event id."""
    table = get_table_name("calendar_events")
    fields = dict(payload.model_dump(exclude_none=True), companyId=company_id, status="scheduled", source="manual")

    created = get_store().create_records(table, [{"fields": fields}])
    if not created:
        raise RecordStoreError("Record store response did not include a created event")

    event_id = created[0].id
    get_store().update_records(table, [{"id": event_id, "fields": {"icalUid": ical_uid(event_id)}}])

    logger.log_operation("schedule.created", "success", {"event_id": event_id, "company_id": company_id})
    return event_id


def update_event(event_id: str, payload: UpdateEventRequest) -> None:
    """Patch the fields present in payload. Raises EventNotFoundError for unknown ids."""
    current = require_event(event_id)

    fields = payload.model_dump(exclude_none=True)
    starts_at = fields.get("startsAt", current.startsAt)
    ends_at = fields.get("endsAt", current.endsAt)
    if parse_iso_datetime(ends_at) < parse_iso_datetime(starts_at):
        raise ValueError("endsAt must not precede startsAt")
    if not fields:
        return

    get_store().update_records(get_table_name("calendar_events"), [{"id": event_id, "fields": fields}])
    logger.log_operation("schedule.updated", "success", {"event_id": event_id, "fields": sorted(fields)})


def cancel_event(event_id: str) -> None:
    update_event(event_id, UpdateEventRequest(status="cancelled"))


def notify_upcoming(now: Optional[datetime] = None) -> int:
    """
    Mark scheduled events starting 60-120 minutes from now as notified.

    Events that already carry lastNotifiedAt are skipped, so overlapping cron runs
    notify each event once. Returns the number of events notified.
    """
    now = now or datetime.now(timezone.utc)
    events = list_events(
        starts_after=to_utc_iso(now + timedelta(minutes=NOTIFY_WINDOW_START_MINUTES)),
        starts_before=to_utc_iso(now + timedelta(minutes=NOTIFY_WINDOW_END_MINUTES)),
        status="scheduled",
    )
    pending = [event for event in events if not event.lastNotifiedAt]

    table = get_table_name("calendar_events")
    for event in pending:
        logger.log_operation("schedule.notify", "sent", {"event_id": event.id, "company_id": event.companyId})
        get_store().update_records(table, [{"id": event.id, "fields": {"lastNotifiedAt": to_utc_iso(now)}}])

    return len(pending)


def suggest_schedule(
    seed: Optional[str] = None,
    window_start: Optional[str] = None,
    window_end: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[EventProposal]:
    """Two meeting proposals, inside the requested window when one is given."""
    now = now or datetime.now(timezone.utc)

    def in_hours(hours: int) -> str:
        return to_utc_iso(now + timedelta(hours=hours))

    return [
        EventProposal(
            title="Review Session",
            description=f"Seed: {seed}" if seed else None,
            startsAt=window_start or in_hours(48),
            endsAt=window_end or in_hours(49),
            location="Online",
            timezone="UTC",
        ),
        EventProposal(
            title="Handoff Meeting",
            description="Coordinate project handoff",
            startsAt=window_start or in_hours(72),
            endsAt=window_end or in_hours(73),
            location="Online",
            timezone="UTC",
        ),
    ]


# Company calendar tokens

def ensure_company_calendar_token(company_id: str) -> str:
    """The company's calendar feed token, minted and stored on first use."""
    table = get_table_name("companies")
    records = get_store().list_records(
        table,
        filter_formula=field_equals("id", company_id),
        fields=["calendarToken"],
        max_records=1,
    )
    token = records[0].fields.get("calendarToken") if records else None
    if token:
        return token

    token = str(uuid.uuid4())
    get_store().update_records(table, [{"id": company_id, "fields": {"calendarToken": token}}])
    logger.log_operation("schedule.token", "created", {"company_id": company_id})
    return token


def company_for_token(token: str) -> str:
    """Company id owning a calendar token. Raises CalendarTokenError for unknown tokens."""
    records = get_store().list_records(
        get_table_name("companies"),
        filter_formula=field_equals("calendarToken", token),
        fields=["id"],
        max_records=1,
    )
    if not records:
        raise CalendarTokenError("Unknown calendar token")
    return records[0].fields.get("id") or records[0].id


# iCalendar rendering

def format_ics_date(value: str) -> str:
    """UTC basic format, e.g. 20240501T010000Z."""
    return parse_iso_datetime(value).astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def escape_ics_text(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def to_ics(event: ScheduleEvent, now: Optional[datetime] = None) -> str:
    """One VEVENT block, CRLF separated, without a trailing line break."""
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%dT%H%M%SZ")
    lines = [
        "BEGIN:VEVENT",
        f"UID:{event.icalUid}",
        f"DTSTAMP:{stamp}",
        f"DTSTART:{format_ics_date(event.startsAt)}",
        f"DTEND:{format_ics_date(event.endsAt)}",
        f"SUMMARY:{escape_ics_text(event.title)}",
    ]
    if event.description:
        lines.append(f"DESCRIPTION:{escape_ics_text(event.description)}")
    if event.location:
        lines.append(f"LOCATION:{escape_ics_text(event.location)}")
    if event.status == "cancelled":
        lines.append("STATUS:CANCELLED")
    lines.append("END:VEVENT")
    return "\r\n".join(lines)


def to_ics_feed(events: List[ScheduleEvent], calendar_name: Optional[str] = None,
                now: Optional[datetime] = None) -> str:
    """VCALENDAR document holding every event, ending with CRLF."""
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0", f"PRODID:{ICS_PRODUCT_ID}"]
    if calendar_name:
        lines.append(f"X-WR-CALNAME:{escape_ics_text(calendar_name)}")
    for event in events:
        lines.append(to_ics(event, now=now))
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines) + "\r\n"
