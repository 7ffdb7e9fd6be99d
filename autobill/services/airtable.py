from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

import httpx

from ..core.errors import ExternalServiceError, TransientServiceError, error_for_status
from ..core.retry import call_with_retry

logger = logging.getLogger(__name__)

SERVICE = "airtable"


def equality_formula(field: str, value: Any) -> str:
    if isinstance(value, bool):
        return f"{{{field}}}={'TRUE()' if value else 'FALSE()'}"
    if isinstance(value, (int, float)):
        return f"{{{field}}}={value}"
    escaped = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"{{{field}}}='{escaped}'"


class AirtableClient:
    def __init__(
        self,
        api_key: str,
        base_id: str,
        *,
        api_url: str = "https://api.airtable.com/v0",
        timeout: float = 30.0,
        retry_attempts: int = 3,
        retry_delay: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self._base_url = f"{api_url.rstrip('/')}/{base_id}"
        self._client = http_client or httpx.Client(timeout=httpx.Timeout(timeout))
        self._client_owned = http_client is None
        self._headers = {"Authorization": f"Bearer {api_key}"}
        self._retry_attempts = retry_attempts
        self._retry_delay = retry_delay
        self._sleep = sleep

    def close(self) -> None:
        if self._client_owned:
            self._client.close()

    def table(self, name: str) -> "AirtableTable":
        return AirtableTable(self, name)

    def request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        return call_with_retry(
            lambda: self._send(method, path, **kwargs),
            description=f"Airtable {method} {path}",
            attempts=self._retry_attempts,
            delay=self._retry_delay,
            sleep=self._sleep,
        )

    def _send(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = self._client.request(method, f"{self._base_url}{path}", headers=self._headers, **kwargs)
        except httpx.RequestError as exc:
            raise TransientServiceError(SERVICE, f"request failed: {exc}") from exc
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            detail = exc.response.text
            logger.error("Airtable API error (%s %s): %s", method, path, detail)
            raise error_for_status(SERVICE, exc.response.status_code, detail) from exc
        try:
            payload = response.json()
        except ValueError as exc:
            raise TransientServiceError(SERVICE, "unexpected non-JSON response") from exc
        if not isinstance(payload, dict):
            raise ExternalServiceError(SERVICE, f"unexpected response body: {payload!r}")
        return payload


class AirtableTable:
    """One Airtable table: equality queries, point reads and partial updates."""

    def __init__(self, client: AirtableClient, name: str) -> None:
        self._client = client
        self.name = name
        self._path = "/" + quote(name, safe="")

    def list_records(self, formula: Optional[str] = None, view: Optional[str] = None) -> List[Dict[str, Any]]:
        params: Dict[str, str] = {}
        if formula:
            params["filterByFormula"] = formula
        if view:
            params["view"] = view
        records: List[Dict[str, Any]] = []
        while True:
            page = self._client.request("GET", self._path, params=params)
            records.extend(page.get("records") or [])
            offset = page.get("offset")
            if not offset:
                return records
            params["offset"] = offset

    def find_by_field(self, field: str, value: Any, view: Optional[str] = None) -> List[Dict[str, Any]]:
        return self.list_records(equality_formula(field, value), view=view)

    def get(self, record_id: str) -> Dict[str, Any]:
        return self._client.request("GET", f"{self._path}/{quote(record_id, safe='')}")

    def update(self, record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        # A single PATCH writes every field of the record together.
        return self._client.request("PATCH", f"{self._path}/{quote(record_id, safe='')}", json={"fields": fields})
