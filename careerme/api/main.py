"""
CareerMe wizard API.
JSON routes for resume data, AI-assisted text, print snapshots and company schedules.
"""

from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .schemas import HealthResponse
from .errors import register_exception_handlers
from . import ai, data, prints, schedule
from .. import VERSION
from ..core.config import debug_enabled, get_source_env, validate_config
from ..util.correlation import CORRELATION_HEADER, current_correlation_id, ensure_correlation_id
from ..util.logging import logger

for issue in validate_config():
    logger.warning(f"Configuration issue: {issue}")

# Initialize the FastAPI application
app = FastAPI(
    title="CareerMe API",
    version=VERSION,
    description="Resume wizard backend with record store persistence and AI-assisted text",
    docs_url="/docs" if debug_enabled() else None,
    redoc_url="/redoc" if debug_enabled() else None
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def correlation_id_middleware(request: Request, call_next):
    """Tag the request and its response with a correlation id."""
    correlation_id = ensure_correlation_id(request.headers.get(CORRELATION_HEADER))
    request.state.correlation_id = correlation_id
    token = current_correlation_id.set(correlation_id)
    try:
        response = await call_next(request)
    finally:
        current_correlation_id.reset(token)
    response.headers[CORRELATION_HEADER] = correlation_id
    return response


@app.get("/api/healthz", response_model=HealthResponse)
def healthz():
    """Liveness check."""
    return HealthResponse(ok=True, env=get_source_env(), time=datetime.now(timezone.utc))


app.include_router(data.router)
app.include_router(ai.router)
app.include_router(prints.router)
app.include_router(schedule.router)
