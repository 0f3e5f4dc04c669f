"""
Configuration - environment driven.
Values that deployments or tests flip at runtime are read through accessor functions.
"""

import os

# Record store (Airtable-compatible REST API)
AIRTABLE_API_URL = os.getenv("AIRTABLE_API_URL", "https://api.airtable.com")
AIRTABLE_PAGE_SIZE = 100
STORE_MAX_ATTEMPTS = 3
STORE_BACKOFF_BASE_MS = 250
STORE_WRITE_BATCH_SIZE = 10

# Text generation (Gemini generateContent)
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
GEMINI_ENDPOINT = os.getenv("GEMINI_ENDPOINT", "https://generativelanguage.googleapis.com/v1beta/models")
GEMINI_TIMEOUT_MS = int(os.getenv("GEMINI_TIMEOUT_MS", "12000"))

# Rate limit for the "generate" action
AI_RATE_LIMIT = int(os.getenv("AI_RATE_LIMIT", "10"))
AI_RATE_LIMIT_WINDOW_MS = int(os.getenv("AI_RATE_LIMIT_WINDOW_MS", str(60 * 60 * 1000)))

# Anonymous session cookie
ANON_COOKIE_NAME = "anon_key"
ANON_COOKIE_MAX_AGE = 60 * 60 * 24 * 365

PRINT_SNAPSHOT_MAX_AGE = 60 * 10

# Calendar events
SCHEDULE_PAGE_SIZE = 25
SCHEDULE_MAX_PAGE_SIZE = 100
NOTIFY_WINDOW_START_MINUTES = 60
NOTIFY_WINDOW_END_MINUTES = 120
ICAL_UID_DOMAIN = os.getenv("ICAL_UID_DOMAIN", "careerme")
DEFAULT_COMPANY_ID = "default-company"

VALID_REPLACE_STRATEGIES = ("delete_first", "create_first")


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def get_source_env() -> str:
    """Map the deployment indicator to prod|preview|dev."""
    vercel_env = os.getenv("VERCEL_ENV", "")
    if vercel_env == "production":
        return "prod"
    if vercel_env == "preview":
        return "preview"
    return "dev"


def get_pr_ref() -> str:
    """Branch, pull request or deployment URL of the running build."""
    for name in ("VERCEL_GIT_PULL_REQUEST_ID", "VERCEL_GIT_COMMIT_REF", "VERCEL_URL"):
        value = os.getenv(name)
        if value:
            return value
    return "local"


def get_store_base_id():
    return os.getenv("AIRTABLE_BASE_ID")


def get_store_api_key():
    return os.getenv("AIRTABLE_API_KEY")


def has_store_config() -> bool:
    """True when both record store credentials are present."""
    return bool(get_store_base_id() and get_store_api_key())


def get_gemini_api_key():
    return os.getenv("GEMINI_API_KEY")


def get_table_name(kind: str) -> str:
    """Table name for resumes|education|experience|work|lookups|calendar_events|companies."""
    defaults = {
        "resumes": "Resumes",
        "education": "Education",
        "experience": "Experience",
        "work": "Work",
        "lookups": "Lookups",
        "calendar_events": "CalendarEvents",
        "companies": "Companies",
    }
    if kind not in defaults:
        raise ValueError(f"Unknown table kind: {kind}")
    return os.getenv(f"AIRTABLE_TABLE_{kind.upper()}", defaults[kind])


def get_replace_strategy() -> str:
    """Ordering used when an owner's list rows are replaced (delete_first|create_first)."""
    return os.getenv("REPLACE_STRATEGY", "delete_first")


def cookie_secure() -> bool:
    raw = os.getenv("COOKIE_SECURE")
    if raw is None:
        return get_source_env() == "prod"
    return raw.lower() == "true"


def validate_config():
    """Validate configuration and return any issues."""
    issues = []

    if get_replace_strategy() not in VALID_REPLACE_STRATEGIES:
        issues.append(f"Invalid REPLACE_STRATEGY: {get_replace_strategy()}")

    if AI_RATE_LIMIT < 1:
        issues.append("AI_RATE_LIMIT must be >= 1")

    if AI_RATE_LIMIT_WINDOW_MS < 1:
        issues.append("AI_RATE_LIMIT_WINDOW_MS must be >= 1")

    if GEMINI_TIMEOUT_MS < 1:
        issues.append("GEMINI_TIMEOUT_MS must be >= 1")

    if bool(get_store_base_id()) != bool(get_store_api_key()):
        issues.append("AIRTABLE_BASE_ID and AIRTABLE_API_KEY must be set together")

    return issues
