"""
Record store client over an Airtable-compatible REST API.

Every write carries the guard fields (source_env, pr_ref) of the running deployment and every
list query is filtered on source_env, so production, preview and local builds can share one base
without seeing each other's rows. Retries 429/5xx and connection failures with exponential backoff.
"""

import time
from typing import Any, Callable, Dict, Iterable, List, Optional

import requests

from .config import (
    AIRTABLE_API_URL,
    AIRTABLE_PAGE_SIZE,
    STORE_BACKOFF_BASE_MS,
    STORE_MAX_ATTEMPTS,
    get_pr_ref,
    get_source_env,
    get_store_api_key,
    get_store_base_id,
)
from .schema import DeleteResult, Record
from ..util.logging import logger

GUARD_FIELDS = ("source_env", "pr_ref")


class RecordStoreError(Exception):
    """Unrecoverable record store failure. status is None for network failures."""

    def __init__(self, message: str, status: Optional[int] = None, body: str = "", retryable: bool = False):
        super().__init__(message)
        self.status = status
        self.body = body
        self.retryable = retryable


class RecordStoreConfigError(RecordStoreError):
    """Missing base id or API key. Raised before any network call."""


def combine_filter_formulas(*formulas: Optional[str]) -> Optional[str]:
    """AND together the non-empty formulas."""
    valid = [formula for formula in formulas if formula]
    if not valid:
        return None
    if len(valid) == 1:
        return valid[0]
    return f"AND({','.join(valid)})"


def escape_formula_value(value: str) -> str:
    """Escape a value for use inside a single-quoted formula string."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def field_equals(field: str, value: str) -> str:
    return f"{{{field}}}='{escape_formula_value(value)}'"


def environment_formula() -> str:
    return field_equals("source_env", get_source_env())


def ensure_guard_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of fields with caller-supplied guard values replaced by the current ones."""
    clean = {k: v for k, v in (fields or {}).items() if k not in GUARD_FIELDS}
    clean["source_env"] = get_source_env()
    clean["pr_ref"] = get_pr_ref()
    return clean


class DocumentStore:
    """
    List/get/create/update/delete over named tables.

    Credentials are resolved per call so a missing configuration surfaces as
    RecordStoreConfigError at the first operation rather than at construction.
    """

    def __init__(
        self,
        base_id: Optional[str] = None,
        api_key: Optional[str] = None,
        api_url: str = AIRTABLE_API_URL,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        max_attempts: int = STORE_MAX_ATTEMPTS,
        backoff_base_ms: int = STORE_BACKOFF_BASE_MS,
        timeout: float = 30.0,
    ):
        self._base_id = base_id
        self._api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.session = session or requests.Session()
        self.sleep = sleep
        self.max_attempts = max_attempts
        self.backoff_base_ms = backoff_base_ms
        self.timeout = timeout

    def _base_url(self) -> str:
        base_id = self._base_id or get_store_base_id()
        if not base_id:
            raise RecordStoreConfigError("Missing AIRTABLE_BASE_ID environment variable")
        return f"{self.api_url}/v0/{base_id}"

    def _headers(self) -> Dict[str, str]:
        api_key = self._api_key or get_store_api_key()
        if not api_key:
            raise RecordStoreConfigError("Missing AIRTABLE_API_KEY environment variable")
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _request(
        self,
        method: str,
        table: str,
        path: str = "",
        params: Any = None,
        payload: Optional[Dict[str, Any]] = None,
        allow_not_found: bool = False,
    ) -> Optional[Dict[str, Any]]:
        url = f"{self._base_url()}/{requests.utils.quote(table, safe='')}{path}"
        headers = self._headers()

        last_error: Optional[RecordStoreError] = None
        for attempt in range(self.max_attempts):
            start = time.monotonic()
            try:
                response = self.session.request(
                    method,
                    url,
                    params=params,
                    json=payload,
                    headers=headers,
                    timeout=self.timeout,
                )
            except (requests.ConnectionError, requests.Timeout) as e:
                logger.log_store_request(table, method, attempt + 1, "network_error",
                                         (time.monotonic() - start) * 1000)
                last_error = RecordStoreError(
                    f"Record store request failed ({type(e).__name__}): {e}",
                    status=None,
                    body=str(e),
                    retryable=True,
                )
                last_error.__cause__ = e
            else:
                logger.log_store_request(table, method, attempt + 1, response.status_code,
                                         (time.monotonic() - start) * 1000)
                if 200 <= response.status_code < 300:
                    return response.json()

                if allow_not_found and response.status_code == 404:
                    return None

                body = response.text or response.reason or ""
                if response.status_code != 429 and response.status_code < 500:
                    raise RecordStoreError(
                        f"Record store request failed ({response.status_code}): {body}",
                        status=response.status_code,
                        body=body,
                    )

                last_error = RecordStoreError(
                    f"Record store request failed after retries ({response.status_code}): {body}",
                    status=response.status_code,
                    body=body,
                    retryable=True,
                )

            if attempt < self.max_attempts - 1:
                self.sleep(self.backoff_base_ms * (2 ** attempt) / 1000.0)

        raise last_error

    def list_records(
        self,
        table: str,
        filter_formula: Optional[str] = None,
        fields: Optional[List[str]] = None,
        max_records: Optional[int] = None,
        sort: Optional[List[Dict[str, str]]] = None,
        page_size: Optional[int] = None,
        view: Optional[str] = None,
    ) -> List[Record]:
        """
        List records of the current environment matching filter_formula.

        Pages are followed until the service stops returning an offset or max_records rows
        have been collected; the result keeps the service's order.
        """
        formula = combine_filter_formulas(environment_formula(), filter_formula)
        records: List[Record] = []
        offset = None

        while True:
            params = [("pageSize", str(page_size or AIRTABLE_PAGE_SIZE))]
            if formula:
                params.append(("filterByFormula", formula))
            for name in fields or []:
                params.append(("fields[]", name))
            if max_records:
                params.append(("maxRecords", str(max_records)))
            for index, item in enumerate(sort or []):
                params.append((f"sort[{index}][field]", item["field"]))
                if item.get("direction"):
                    params.append((f"sort[{index}][direction]", item["direction"]))
            if view:
                params.append(("view", view))
            if offset:
                params.append(("offset", offset))

            data = self._request("GET", table, params=params)
            records.extend(Record.from_api(raw) for raw in data.get("records", []))

            if max_records and len(records) >= max_records:
                return records[:max_records]

            offset = data.get("offset")
            if not offset:
                return records

    def get_record(self, table: str, record_id: str) -> Optional[Record]:
        """Fetch one record by id. Records of another environment read as missing."""
        data = self._request("GET", table, path=f"/{requests.utils.quote(record_id, safe='')}",
                             allow_not_found=True)
        if data is None:
            return None

        record = Record.from_api(data)
        if record.fields.get("source_env") != get_source_env():
            return None
        return record

    def create_records(self, table: str, records: Iterable[Dict[str, Any]],
                       typecast: Optional[bool] = None) -> List[Record]:
        """Create records given as {"fields": {...}}. Batch size is the caller's concern."""
        payload: Dict[str, Any] = {
            "records": [{"fields": ensure_guard_fields(record.get("fields", {}))} for record in records],
        }
        if typecast is not None:
            payload["typecast"] = typecast

        data = self._request("POST", table, payload=payload)
        return [Record.from_api(raw) for raw in data.get("records", [])]

    def update_records(self, table: str, records: Iterable[Dict[str, Any]],
                       replace: bool = False, typecast: Optional[bool] = None) -> List[Record]:
        """Update records given as {"id", "fields"}; PUT when replace else PATCH."""
        payload: Dict[str, Any] = {
            "records": [
                {"id": record["id"], "fields": ensure_guard_fields(record.get("fields", {}))}
                for record in records
            ],
        }
        if typecast is not None:
            payload["typecast"] = typecast

        data = self._request("PUT" if replace else "PATCH", table, payload=payload)
        return [Record.from_api(raw) for raw in data.get("records", [])]

    def delete_records(self, table: str, record_ids: List[str]) -> List[DeleteResult]:
        if not record_ids:
            return []

        params = [("records[]", record_id) for record_id in record_ids]
        data = self._request("DELETE", table, params=params)
        return [
            DeleteResult(id=raw.get("id", ""), deleted=bool(raw.get("deleted")))
            for raw in data.get("records", [])
        ]


_store: Optional[DocumentStore] = None


def get_store() -> DocumentStore:
    """Process-wide store instance."""
    global _store
    if _store is None:
        _store = DocumentStore()
    return _store
