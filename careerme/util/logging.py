"""
Structured operation logging for store, generation and API events.
"""

import logging
from typing import Any, Dict, List, Optional

from .correlation import get_current_correlation_id

DEFAULT_SENSITIVE_FIELDS = ['text', 'prompt', 'qa', 'selfPr', 'summary', 'draft', 'api_key', 'anon_key']


class StructuredLogger:
    """Structured logger for record store, generation and rate limit operations."""

    def __init__(self, name: str = "careerme"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None, level: int = logging.INFO):
        """Log a structured operation, tagged with the current request's correlation id."""
        details = dict(details or {})
        correlation_id = get_current_correlation_id()
        if correlation_id and "correlation_id" not in details:
            details["correlation_id"] = correlation_id

        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {sanitize_payload(details)}"

        self.logger.log(level, message)

    def log_store_request(self, table: str, method: str, attempt: int, status: Any,
                          duration_ms: float, correlation_id: Optional[str] = None):
        """Log one HTTP round trip to the record store."""
        details = {
            "table": table,
            "method": method,
            "attempt": attempt,
            "http_status": status,
            "duration_ms": round(duration_ms, 2),
        }
        if correlation_id:
            details["correlation_id"] = correlation_id

        ok = isinstance(status, int) and 200 <= status < 300
        self.log_operation(
            f"store.{method.lower()}",
            "success" if ok else "failed",
            details,
            level=logging.INFO if ok else logging.WARNING,
        )

    def log_generation(self, model: str, attempt: int, status: str, tokens: Optional[int] = None,
                       correlation_id: Optional[str] = None, error: Optional[str] = None):
        """Log one generation attempt."""
        details = {"model": model, "attempt": attempt}
        if tokens is not None:
            details["tokens"] = tokens
        if correlation_id:
            details["correlation_id"] = correlation_id
        if error:
            details["error"] = error[:200]

        level = logging.INFO if status == "success" else logging.WARNING
        self.log_operation("generation", status, details, level=level)

    def log_rate_limited(self, key: str, retry_after_ms: Optional[int], correlation_id: Optional[str] = None):
        """Log a rejected request. Only the key prefix is kept."""
        details = {"key": key.split(":", 1)[0], "retry_after_ms": retry_after_ms}
        if correlation_id:
            details["correlation_id"] = correlation_id

        self.log_operation("rate_limit", "limited", details, level=logging.WARNING)

    def log_api_error(self, route: str, error: Exception, correlation_id: Optional[str] = None):
        """Log a failure surfaced by an API route."""
        details = {"route": route, "error_type": type(error).__name__, "error": str(error)[:200]}
        if correlation_id:
            details["correlation_id"] = correlation_id

        self.log_operation("api", "error", details, level=logging.ERROR)

    # Standard logging methods for compatibility
    def _tagged(self, message: str) -> str:
        correlation_id = get_current_correlation_id()
        return f"[{correlation_id}] {message}" if correlation_id else message

    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(self._tagged(message))

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(self._tagged(message))

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(self._tagged(message))

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(self._tagged(message))


# Global logger instance
logger = StructuredLogger()


def sanitize_payload(payload: Any, reveal_sensitive: bool = False, sensitive_fields: List[str] = None) -> Any:
    """Sanitize payloads for logging."""
    if sensitive_fields is None:
        sensitive_fields = DEFAULT_SENSITIVE_FIELDS

    if isinstance(payload, dict):
        sanitized = {}
        for k, v in payload.items():
            if reveal_sensitive or k not in sensitive_fields:
                sanitized[k] = sanitize_payload(v, reveal_sensitive, sensitive_fields)
            else:
                sanitized[k] = "[REDACTED]"
        return sanitized
    elif isinstance(payload, str):
        # Truncate long strings
        return payload[:100] + "..." if len(payload) > 100 else payload
    elif isinstance(payload, list):
        return [sanitize_payload(item, reveal_sensitive, sensitive_fields) for item in payload]
    else:
        return payload
