"""
Anonymous per-browser key kept in an HTTP-only cookie.
Used as the rate limit key and as the owner tag on stored resumes.
"""

import uuid
from typing import Optional

from fastapi import Request, Response

from ..core.config import ANON_COOKIE_NAME, ANON_COOKIE_MAX_AGE, cookie_secure


def generate_anon_key() -> str:
    return str(uuid.uuid4())


def read_anon_key(request: Request) -> Optional[str]:
    value = request.cookies.get(ANON_COOKIE_NAME)
    return value or None


def set_anon_cookie(response: Response, value: str) -> None:
    response.set_cookie(
        key=ANON_COOKIE_NAME,
        value=value,
        max_age=ANON_COOKIE_MAX_AGE,
        path="/",
        httponly=True,
        samesite="lax",
        secure=cookie_secure(),
    )


def rate_limit_key(request: Request) -> str:
    """Anonymous key when present, else the first forwarded client IP."""
    anon = read_anon_key(request)
    if anon:
        return f"anon:{anon}"

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"

    real_ip = request.headers.get("x-real-ip") or request.headers.get("cf-connecting-ip")
    if real_ip:
        return f"ip:{real_ip}"

    if request.client and request.client.host:
        return f"ip:{request.client.host}"
    return "ip:unknown"
