"""
Typed results shared by the store, generation and rate limit layers.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class Record:
    id: str
    created_time: str
    fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "Record":
        return cls(
            id=raw.get("id", ""),
            created_time=raw.get("createdTime", ""),
            fields=dict(raw.get("fields") or {}),
        )


@dataclass
class DeleteResult:
    id: str
    deleted: bool


@dataclass
class GenerationResult:
    text: str
    tokens: Optional[int] = None


@dataclass
class RateLimitResult:
    limited: bool
    remaining: int
    retry_after_ms: Optional[int] = None
