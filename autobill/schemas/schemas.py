from __future__ import annotations

import math
from datetime import date
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

from ..constants import (
    ACTIVE_STATUS,
    INVOICE_NOTE,
    INVOICE_SUBJECT_TEMPLATE,
    SERVICE_ACTIVE,
    SERVICE_BILLED_MONTHS,
    SERVICE_CATEGORY,
    SERVICE_CLIENT_ID,
    SERVICE_NAME,
    SERVICE_PRICE,
    SERVICE_SELLSY_ID,
    SERVICE_TAX_RATE,
    SERVICE_TOTAL_OCCURRENCES,
    SUBSCRIPTION_BILLING_DAY,
    SUBSCRIPTION_CLIENT_ID,
    SUBSCRIPTION_NAME,
    SUBSCRIPTION_SERVICES,
    SUBSCRIPTION_START_DATE,
    SUBSCRIPTION_STATUS,
)


def normalize_reference(value: Any) -> Optional[str]:
    """Turn an Airtable id-like cell (text, number or lookup list) into a trimmed string."""
    if isinstance(value, list):
        value = value[0] if value else None
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def normalize_active_flag(value: Any) -> bool:
    if value is True:
        return True
    if isinstance(value, str):
        return value == ACTIVE_STATUS
    return False


def coerce_count(value: Any) -> int:
    """Occurrence counters: anything non-numeric counts as 0."""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, str):
        try:
            value = float(value.strip().replace(",", "."))
        except ValueError:
            return 0
    if isinstance(value, (int, float, Decimal)):
        if isinstance(value, float) and not math.isfinite(value):
            return 0
        return max(0, int(value))
    return 0


def compute_remaining(total: int, billed: int) -> int:
    return max(0, total - billed)


Reference = Annotated[Optional[str], BeforeValidator(normalize_reference)]
ActiveFlag = Annotated[bool, BeforeValidator(normalize_active_flag)]
Count = Annotated[int, BeforeValidator(coerce_count)]


class AirtableRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str

    @classmethod
    def from_airtable(cls, record: Dict[str, Any]):
        return cls.model_validate({**record.get("fields", {}), "id": record["id"]})


class SubscriptionRecord(AirtableRecord):
    name: Optional[str] = Field(default=None, alias=SUBSCRIPTION_NAME)
    status: Optional[str] = Field(default=None, alias=SUBSCRIPTION_STATUS)
    client_id: Reference = Field(default=None, alias=SUBSCRIPTION_CLIENT_ID)
    # Parsed by the selector so bad values end up as warnings, not rejected records.
    billing_day: Any = Field(default=None, alias=SUBSCRIPTION_BILLING_DAY)
    start_date: Any = Field(default=None, alias=SUBSCRIPTION_START_DATE)
    service_refs: List[str] = Field(default_factory=list, alias=SUBSCRIPTION_SERVICES)

    @field_validator("service_refs", mode="before")
    @classmethod
    def _normalize_service_refs(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if not isinstance(value, list):
            value = [value]
        return [ref for ref in (normalize_reference(item) for item in value) if ref]

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE_STATUS

    @property
    def label(self) -> str:
        return self.name or "Sans nom"


class ServiceRecord(AirtableRecord):
    name: Optional[str] = Field(default=None, alias=SERVICE_NAME)
    is_active: ActiveFlag = Field(default=False, alias=SERVICE_ACTIVE)
    category: Optional[str] = Field(default=None, alias=SERVICE_CATEGORY)
    client_id: Reference = Field(default=None, alias=SERVICE_CLIENT_ID)
    sellsy_id: Reference = Field(default=None, alias=SERVICE_SELLSY_ID)
    # Parsed when the invoice is built: a bad price is a hard error there.
    price: Any = Field(default=None, alias=SERVICE_PRICE)
    tax_rate: Any = Field(default=None, alias=SERVICE_TAX_RATE)
    total_occurrences: Count = Field(default=0, alias=SERVICE_TOTAL_OCCURRENCES)
    billed_months: Count = Field(default=0, alias=SERVICE_BILLED_MONTHS)

    @property
    def remaining_occurrences(self) -> int:
        return compute_remaining(self.total_occurrences, self.billed_months)

    @property
    def label(self) -> str:
        return self.name or "Sans nom"


class InvoiceRequest(BaseModel):
    client_id: int
    service_reference: str
    service_name: str
    price: Decimal
    tax_rate: Decimal

    def to_payload(self, issued_on: date) -> Dict[str, Any]:
        day = issued_on.isoformat()
        return {
            "date": day,
            "due_date": day,
            "subject": INVOICE_SUBJECT_TEMPLATE.format(service_name=self.service_name),
            "related": [{"id": self.client_id, "type": "company"}],
            "rows": [
                {
                    "type": "item",
                    "reference": self.service_reference,
                    "name": self.service_name,
                    "qty": 1,
                    "unit_price": float(self.price),
                    "tax_rate": float(self.tax_rate),
                }
            ],
            "note": INVOICE_NOTE,
        }


class PaymentMethod(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Union[int, str]
    label: str = ""
    is_active: bool = True


class TokenResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(min_length=1)
    expires_in: int = Field(gt=0)
