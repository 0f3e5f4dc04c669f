"""
Correlation ids threaded through a request and its log lines.
"""

import re
import uuid
from contextvars import ContextVar
from typing import Optional

CORRELATION_HEADER = "x-correlation-id"

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

# Id of the request being served; copied into threadpool workers with the context
current_correlation_id: ContextVar[Optional[str]] = ContextVar("current_correlation_id", default=None)


def is_valid_uuid(value: Optional[str]) -> bool:
    return bool(value) and bool(UUID_PATTERN.match(value))


def ensure_correlation_id(value: Optional[str] = None) -> str:
    """Return the inbound id when it is a v1-5 UUID, else mint a new one."""
    trimmed = value.strip() if value else ""
    if trimmed and UUID_PATTERN.match(trimmed):
        return trimmed
    return str(uuid.uuid4())


def get_current_correlation_id() -> Optional[str]:
    return current_correlation_id.get()
