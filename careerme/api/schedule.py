"""
Company schedule routes: calendar events, ICS feeds and the reminder cron.

The company comes from the x-company-id header. ICS feeds are read by calendar clients
without cookies, so they authenticate with the company's calendar token instead.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Header, HTTPException, Query, Request, Response

from .errors import get_correlation_id
from .schemas import (
    CalendarTokenResponse,
    ErrorResponse,
    EventCreatedResponse,
    EventListResponse,
    EventResponse,
    NotifyResponse,
    ScheduleOkResponse,
    SuggestScheduleRequest,
    SuggestScheduleResponse,
)
from ..core import schedule
from ..core.config import DEFAULT_COMPANY_ID, SCHEDULE_MAX_PAGE_SIZE
from ..core.models import CreateEventRequest, UpdateEventRequest
from ..util.dates import to_utc_iso
from ..util.logging import logger

COMPANY_HEADER = "x-company-id"
CRON_HEADER = "x-vercel-cron"
ICS_MEDIA_TYPE = "text/calendar"
FEED_CACHE_CONTROL = "public, s-maxage=300, stale-while-revalidate=86400"

router = APIRouter(
    prefix="/api/schedule",
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)


def _company_id(request: Request) -> str:
    return request.headers.get(COMPANY_HEADER) or DEFAULT_COMPANY_ID


def _timestamp_param(value: Optional[str], name: str) -> Optional[str]:
    if not value:
        return None
    try:
        return to_utc_iso(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"{name} must be an ISO 8601 timestamp")


@router.get("", response_model=EventListResponse)
def list_events(
    request: Request,
    starts_after: Optional[str] = Query(default=None, alias="from"),
    to: Optional[str] = None,
    status: Optional[Literal["scheduled", "done", "cancelled", "all"]] = None,
    limit: Optional[int] = Query(default=None, ge=1, le=SCHEDULE_MAX_PAGE_SIZE),
):
    items = schedule.list_events(
        starts_after=_timestamp_param(starts_after, "from"),
        starts_before=_timestamp_param(to, "to"),
        status=status,
        limit=limit,
    )
    return EventListResponse(items=items, correlationId=get_correlation_id(request))


@router.post("", response_model=EventCreatedResponse)
def create_event(payload: CreateEventRequest, request: Request):
    event_id = schedule.create_event(_company_id(request), payload)
    return EventCreatedResponse(eventId=event_id, correlationId=get_correlation_id(request))


@router.post("/suggest", response_model=SuggestScheduleResponse)
def suggest(payload: SuggestScheduleRequest, request: Request):
    proposals = schedule.suggest_schedule(
        seed=payload.seed,
        window_start=payload.windowStart,
        window_end=payload.windowEnd,
    )
    logger.log_operation("schedule.suggested", "success", {"company_id": _company_id(request),
                                                            "proposals": len(proposals)})
    return SuggestScheduleResponse(proposals=proposals, correlationId=get_correlation_id(request))


@router.post("/calendar-token", response_model=CalendarTokenResponse)
def calendar_token(request: Request):
    """Token for the company's ICS feed, minted on first request."""
    token = schedule.ensure_company_calendar_token(_company_id(request))
    return CalendarTokenResponse(token=token, correlationId=get_correlation_id(request))


@router.get("/export.ics")
def export_feed(token: str = Query(min_length=1)):
    company_id = schedule.company_for_token(token)
    events = schedule.list_events(status="scheduled", company_id=company_id)
    logger.log_operation("schedule.ics", "viewed", {"company_id": company_id, "events": len(events)})
    return Response(
        content=schedule.to_ics_feed(events),
        media_type=ICS_MEDIA_TYPE,
        headers={"cache-control": FEED_CACHE_CONTROL},
    )


@router.post("/cron/notify", response_model=NotifyResponse)
def cron_notify(request: Request, x_vercel_cron: Optional[str] = Header(default=None)):
    """Reminder pass for events starting in the next one to two hours. Only the scheduler may call it."""
    if not x_vercel_cron:
        raise HTTPException(status_code=401, detail="Unauthorized")

    sent = schedule.notify_upcoming()
    return NotifyResponse(sent=sent, correlationId=get_correlation_id(request))


@router.get("/{event_id}", response_model=EventResponse)
def get_event(event_id: str, request: Request):
    return EventResponse(event=schedule.require_event(event_id), correlationId=get_correlation_id(request))


@router.put("/{event_id}", response_model=ScheduleOkResponse)
def update_event(event_id: str, payload: UpdateEventRequest, request: Request):
    try:
        schedule.update_event(event_id, payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ScheduleOkResponse(correlationId=get_correlation_id(request))


@router.delete("/{event_id}", response_model=ScheduleOkResponse)
def cancel_event(event_id: str, request: Request):
    schedule.cancel_event(event_id)
    return ScheduleOkResponse(correlationId=get_correlation_id(request))


@router.get("/{event_id}/export.ics")
def export_event(event_id: str, token: str = Query(min_length=1)):
    company_id = schedule.company_for_token(token)
    event = schedule.require_event(event_id)
    if event.companyId != company_id:
        raise schedule.EventNotFoundError(f"Event {event_id} not found")

    return Response(content=schedule.to_ics_feed([event]), media_type=ICS_MEDIA_TYPE)
