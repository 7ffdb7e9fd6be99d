import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from autobill import constants as c  # noqa: E402
from autobill.core.errors import RequestRejected, TransientServiceError  # noqa: E402
from autobill.schemas.schemas import PaymentMethod  # noqa: E402


class InMemoryTable:
    """Stands in for an Airtable table: equality queries, point reads, partial updates."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.records: Dict[str, Dict[str, Any]] = {}
        self.updates: List[tuple] = []
        self.failing_gets: set = set()
        self.failing_updates: set = set()

    def add(self, record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        self.records[record_id] = {"id": record_id, "fields": dict(fields)}
        return self.records[record_id]

    def find_by_field(self, field: str, value: Any, view: Optional[str] = None) -> List[Dict[str, Any]]:
        return [record for record in self.records.values() if record["fields"].get(field) == value]

    def get(self, record_id: str) -> Dict[str, Any]:
        if record_id in self.failing_gets:
            raise TransientServiceError("airtable", "responded with 503: unavailable", 503)
        if record_id not in self.records:
            raise RequestRejected("airtable", "responded with 404: NOT_FOUND", 404)
        record = self.records[record_id]
        return {"id": record["id"], "fields": dict(record["fields"])}

    def update(self, record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        if record_id in self.failing_updates:
            raise TransientServiceError("airtable", "responded with 503: unavailable", 503)
        self.updates.append((record_id, dict(fields)))
        self.records[record_id]["fields"].update(fields)
        return self.get(record_id)


class FakeSellsy:
    """Records the invoicing calls the job makes."""

    def __init__(self) -> None:
        self.created: List[Any] = []
        self.validated: List[Any] = []
        self.payment_details: List[tuple] = []
        self.payment_method_searches = 0
        self.payment_methods = [PaymentMethod(id=7, label="GoCardless", is_active=True)]
        self.failing_services: set = set()
        self.fail_payment_details = False
        self._next_id = 1000

    def create_invoice(self, invoice, issued_on):
        if invoice.service_reference in self.failing_services:
            raise TransientServiceError("sellsy", "responded with 503: unavailable", 503)
        self._next_id += 1
        self.created.append((invoice, issued_on))
        return {"id": self._next_id, "status": "draft"}

    def validate_invoice(self, invoice_id, issued_on):
        self.validated.append((invoice_id, issued_on))
        return {"id": invoice_id, "status": "due"}

    def search_payment_methods(self):
        self.payment_method_searches += 1
        return list(self.payment_methods)

    def configure_direct_debit(self, invoice_id, payment_method_id):
        if self.fail_payment_details:
            raise RequestRejected("sellsy", "responded with 400: mandate missing", 400)
        self.payment_details.append((invoice_id, payment_method_id))
        return {}


@pytest.fixture
def subscriptions_table() -> InMemoryTable:
    return InMemoryTable("Abonnements")


@pytest.fixture
def services_table() -> InMemoryTable:
    return InMemoryTable("service_sellsy")


@pytest.fixture
def fake_sellsy() -> FakeSellsy:
    return FakeSellsy()


@pytest.fixture
def create_service(services_table: InMemoryTable) -> Callable[..., Dict[str, Any]]:
    counter = {"value": 0}

    def _create(**overrides: Any) -> Dict[str, Any]:
        counter["value"] += 1
        fields = {
            c.SERVICE_NAME: f"Maintenance {counter['value']}",
            c.SERVICE_ACTIVE: True,
            c.SERVICE_CATEGORY: c.RECURRING_CATEGORY,
            c.SERVICE_CLIENT_ID: "4242",
            c.SERVICE_SELLSY_ID: f"SRV-{counter['value']:03d}",
            c.SERVICE_PRICE: 49.9,
            c.SERVICE_TAX_RATE: 20,
            c.SERVICE_TOTAL_OCCURRENCES: 12,
            c.SERVICE_BILLED_MONTHS: 7,
            c.SERVICE_REMAINING_OCCURRENCES: 5,
        }
        fields.update(overrides)
        return services_table.add(f"recSrv{counter['value']:04d}", fields)

    return _create


@pytest.fixture
def create_subscription(subscriptions_table: InMemoryTable) -> Callable[..., Dict[str, Any]]:
    counter = {"value": 0}

    def _create(services: Optional[List[Dict[str, Any]]] = None, **overrides: Any) -> Dict[str, Any]:
        counter["value"] += 1
        fields = {
            c.SUBSCRIPTION_NAME: f"Abonnement {counter['value']}",
            c.SUBSCRIPTION_STATUS: c.ACTIVE_STATUS,
            c.SUBSCRIPTION_CLIENT_ID: "4242",
            c.SUBSCRIPTION_BILLING_DAY: 15,
            c.SUBSCRIPTION_SERVICES: [service["id"] for service in services or []],
        }
        fields.update(overrides)
        return subscriptions_table.add(f"recSub{counter['value']:04d}", fields)

    return _create
