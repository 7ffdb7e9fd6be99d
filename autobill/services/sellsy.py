from __future__ import annotations

import logging
import time
from datetime import date
from typing import Any, Callable, Dict, List, Optional

import httpx
from pydantic import ValidationError

from ..constants import PAYMENT_TERMS_ON_RECEIPT
from ..core.errors import (
    AuthenticationRejected,
    ConnectivityError,
    ExternalServiceError,
    TransientServiceError,
    error_for_status,
)
from ..core.retry import call_with_retry
from ..schemas.schemas import InvoiceRequest, PaymentMethod, TokenResponse

logger = logging.getLogger(__name__)

SERVICE = "sellsy"


class TokenCache:
    """Bearer token plus the moment it stops being reused."""

    def __init__(self, refresh_margin: float = 300.0, clock: Callable[[], float] = time.time) -> None:
        self._refresh_margin = refresh_margin
        self._clock = clock
        self._value: Optional[str] = None
        self._expires_at: Optional[float] = None

    def get(self) -> Optional[str]:
        if self._value is None or self._expires_at is None:
            return None
        if self._clock() >= self._expires_at:
            return None
        return self._value

    def store(self, value: str, expires_in: float) -> None:
        self._value = value
        self._expires_at = self._clock() + expires_in - self._refresh_margin

    def invalidate(self) -> None:
        self._value = None
        self._expires_at = None


class SellsyClient:
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        api_url: str = "https://api.sellsy.com/v2",
        token_url: str = "https://api.sellsy.com/oauth2/token",
        timeout: float = 30.0,
        retry_attempts: int = 3,
        retry_delay: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
        token_cache: Optional[TokenCache] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        self._token_url = token_url
        self._client_id = client_id
        self._client_secret = client_secret
        self._client = http_client or httpx.Client(timeout=httpx.Timeout(timeout))
        self._client_owned = http_client is None
        self._retry_attempts = retry_attempts
        self._retry_delay = retry_delay
        self._sleep = sleep
        self.token_cache = token_cache or TokenCache()

    def close(self) -> None:
        if self._client_owned:
            self._client.close()

    # --- Authentication ---

    def _access_token(self) -> str:
        token = self.token_cache.get()
        if token:
            return token
        try:
            response = self._client.post(
                self._token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                },
            )
        except httpx.RequestError as exc:
            raise TransientServiceError(SERVICE, f"token request failed: {exc}") from exc
        if response.is_error:
            logger.error("Sellsy token request rejected (%s): %s", response.status_code, response.text)
            raise error_for_status(SERVICE, response.status_code, "could not obtain an access token")
        try:
            payload = TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise TransientServiceError(SERVICE, "invalid token response") from exc
        self.token_cache.store(payload.access_token, payload.expires_in)
        return payload.access_token

    # --- Requests ---

    def request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        def _on_retry(exc: BaseException) -> None:
            if isinstance(exc, AuthenticationRejected):
                self.token_cache.invalidate()

        return call_with_retry(
            lambda: self._send(method, path, json),
            description=f"Sellsy {method} {path}",
            attempts=self._retry_attempts,
            delay=self._retry_delay,
            sleep=self._sleep,
            on_retry=_on_retry,
        )

    def _send(self, method: str, path: str, json: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {self._access_token()}"}
        try:
            response = self._client.request(method, f"{self._api_url}{path}", headers=headers, json=json)
        except httpx.RequestError as exc:
            raise TransientServiceError(SERVICE, f"request failed: {exc}") from exc
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            detail = exc.response.text
            logger.error("Sellsy API error (%s %s): %s", method, path, detail)
            raise error_for_status(SERVICE, exc.response.status_code, detail) from exc
        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as exc:
            raise TransientServiceError(SERVICE, "unexpected non-JSON response") from exc
        if not isinstance(payload, dict):
            raise ExternalServiceError(SERVICE, f"unexpected response body: {payload!r}")
        return payload

    # --- Operations ---

    def check_connection(self) -> None:
        try:
            self.request("GET", "/scopes")
        except ExternalServiceError as exc:
            raise ConnectivityError(f"Unable to reach the Sellsy API: {exc}") from exc

    def create_invoice(self, invoice: InvoiceRequest, issued_on: date) -> Dict[str, Any]:
        created = self.request("POST", "/invoices", json=invoice.to_payload(issued_on))
        if not created.get("id"):
            raise ExternalServiceError(SERVICE, "invoice creation returned no id")
        return created

    def validate_invoice(self, invoice_id: Any, issued_on: date) -> Dict[str, Any]:
        day = issued_on.isoformat()
        return self.request("POST", f"/invoices/{invoice_id}/validate", json={"date": day, "due_date": day})

    def search_payment_methods(self) -> List[PaymentMethod]:
        response = self.request("POST", "/payments/methods/search", json={"filters": {"is_active": True}})
        items = response.get("data")
        if not isinstance(items, list):
            logger.warning("Unexpected Sellsy payment method search response: %s", response)
            return []
        methods: List[PaymentMethod] = []
        for item in items:
            try:
                methods.append(PaymentMethod.model_validate(item))
            except ValidationError:
                logger.warning("Ignoring malformed Sellsy payment method: %s", item)
        return methods

    def configure_direct_debit(self, invoice_id: Any, payment_method_id: Any) -> Dict[str, Any]:
        return self.request(
            "POST",
            f"/invoices/{invoice_id}/payment-details",
            json={
                "payment_method_id": payment_method_id,
                "payment_terms": PAYMENT_TERMS_ON_RECEIPT,
                "use_direct_debit": True,
            },
        )
