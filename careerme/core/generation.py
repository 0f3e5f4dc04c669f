"""
Text generation client for a Gemini-style generateContent endpoint.

Single-turn prompt in, first candidate's text out. One retry on 5xx; timeouts and
empty candidates are failures, never empty-string successes. Each attempt has a wall-clock
deadline covering connect, headers and body, so a peer that trickles bytes still times out.
"""

import socket
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from contextlib import suppress
from typing import Any, Dict, Optional

import requests

from .config import GEMINI_ENDPOINT, GEMINI_MODEL, GEMINI_TIMEOUT_MS, get_gemini_api_key
from .schema import GenerationResult
from ..util.logging import logger

TIMEOUT_STATUS = "timeout"
MAX_ATTEMPTS = 2


class GenerationError(Exception):
    """
    Typed generation failure.

    kind: invalid_request | config | timeout | http | empty | network
    status: HTTP status, "timeout" for timeouts, None otherwise
    """

    def __init__(self, message: str, kind: str, status: Any = None):
        super().__init__(message)
        self.kind = kind
        self.status = status


def extract_candidate_text(payload: Dict[str, Any]) -> Optional[str]:
    """Join the first candidate's non-empty text parts with newlines."""
    candidates = payload.get("candidates") or []
    if not candidates:
        return None

    content = (candidates[0] or {}).get("content") or {}
    parts = content.get("parts") or []
    texts = []
    for part in parts:
        text = (part or {}).get("text")
        if isinstance(text, str) and text.strip():
            texts.append(text.strip())

    joined = "\n".join(texts).strip()
    return joined or None


def extract_token_count(payload: Dict[str, Any]) -> Optional[int]:
    """
    Token usage from usageMetadata.

    An explicit total wins, else prompt + candidates. A reported 0 is kept as 0;
    missing metadata yields None.
    """
    usage = payload.get("usageMetadata")
    if not isinstance(usage, dict):
        return None

    for key in ("totalTokenCount", "totalTokens"):
        if isinstance(usage.get(key), (int, float)):
            return int(usage[key])

    prompt_tokens = usage.get("promptTokenCount")
    candidate_tokens = usage.get("candidatesTokenCount")
    if not isinstance(prompt_tokens, (int, float)) and not isinstance(candidate_tokens, (int, float)):
        return None
    return int(prompt_tokens or 0) + int(candidate_tokens or 0)


def _error_message(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return response.text or response.reason or f"HTTP {response.status_code}"


def _abort(response: requests.Response) -> None:
    """Shut down the socket under a streamed response so a reader on another thread returns."""
    connection = getattr(response.raw, "connection", None)
    sock = getattr(connection, "sock", None)
    if sock is not None:
        with suppress(OSError):
            sock.shutdown(socket.SHUT_RDWR)


class GenerationClient:
    """Thin wrapper around the generateContent endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        endpoint: str = GEMINI_ENDPOINT,
        model: str = GEMINI_MODEL,
        session: Optional[requests.Session] = None,
    ):
        self._api_key = api_key
        self.endpoint = endpoint.rstrip("/")
        self.model = model
        self.session = session or requests.Session()

    def _get_api_key(self) -> str:
        key = self._api_key or get_gemini_api_key()
        if not key:
            raise GenerationError("Missing GEMINI_API_KEY environment variable", kind="config")
        return key

    def _post_with_deadline(self, url: str, body: Dict[str, Any], headers: Dict[str, str],
                            timeout: float) -> requests.Response:
        """
        POST and read the whole body within timeout seconds.

        The exchange runs on a worker thread. When the deadline passes the connection's socket is
        shut down, which ends the worker's blocked read, and requests.Timeout is raised here.
        """
        pending: Dict[str, requests.Response] = {}

        def exchange() -> requests.Response:
            response = self.session.post(url, json=body, headers=headers, timeout=timeout, stream=True)
            pending["response"] = response
            response.content  # read the body inside the deadline
            return response

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="generation")
        future = executor.submit(exchange)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            future.cancel()
            if "response" in pending:
                _abort(pending["response"])
            raise requests.Timeout(f"No complete response within {timeout:.3f}s")
        finally:
            executor.shutdown(wait=False)

    def generate(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_output_tokens: int = 768,
        top_p: Optional[float] = None,
        correlation_id: Optional[str] = None,
        timeout_ms: int = GEMINI_TIMEOUT_MS,
    ) -> GenerationResult:
        if not prompt or not prompt.strip():
            raise GenerationError("Prompt is required for generation", kind="invalid_request")

        api_key = self._get_api_key()
        model_name = model or self.model
        url = f"{self.endpoint}/{requests.utils.quote(model_name, safe='')}:generateContent"

        generation_config: Dict[str, Any] = {
            "temperature": temperature,
            "maxOutputTokens": max_output_tokens,
        }
        if top_p is not None:
            generation_config["topP"] = top_p

        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        if correlation_id:
            headers["x-correlation-id"] = correlation_id

        timeout = timeout_ms / 1000.0
        for attempt in range(1, MAX_ATTEMPTS + 1):
            start = time.monotonic()
            try:
                response = self._post_with_deadline(url, body, headers, timeout)
            except requests.Timeout as e:
                logger.log_generation(model_name, attempt, "timeout", correlation_id=correlation_id)
                raise GenerationError(
                    f"Generation timed out after {timeout_ms}ms", kind="timeout", status=TIMEOUT_STATUS
                ) from e
            except requests.RequestException as e:
                logger.log_generation(model_name, attempt, "failed", correlation_id=correlation_id, error=str(e))
                raise GenerationError(f"Generation request failed: {e}", kind="network") from e

            if not 200 <= response.status_code < 300:
                message = _error_message(response)
                logger.log_generation(model_name, attempt, "failed", correlation_id=correlation_id,
                                      error=f"{response.status_code}: {message}")
                if 500 <= response.status_code < 600 and attempt < MAX_ATTEMPTS:
                    continue
                raise GenerationError(
                    f"Generation request failed ({response.status_code}): {message}",
                    kind="http",
                    status=response.status_code,
                )

            try:
                payload = response.json()
            except ValueError as e:
                raise GenerationError("Generation response was not valid JSON", kind="empty",
                                      status=response.status_code) from e

            text = extract_candidate_text(payload if isinstance(payload, dict) else {})
            if not text:
                logger.log_generation(model_name, attempt, "empty", correlation_id=correlation_id)
                raise GenerationError("Generation response did not include any text content",
                                      kind="empty", status=response.status_code)

            tokens = extract_token_count(payload)
            elapsed_ms = round((time.monotonic() - start) * 1000, 2)
            logger.log_generation(model_name, attempt, "success", tokens=tokens, correlation_id=correlation_id)
            logger.debug(f"Generation completed in {elapsed_ms}ms")
            return GenerationResult(text=text, tokens=tokens)

        raise GenerationError("Generation retry loop ended without a result", kind="http")


_client: Optional[GenerationClient] = None


def get_generation_client() -> GenerationClient:
    """Process-wide generation client."""
    global _client
    if _client is None:
        _client = GenerationClient()
    return _client
