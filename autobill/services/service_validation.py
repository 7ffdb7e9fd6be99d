from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..constants import RECURRING_CATEGORY, SERVICE_SELLSY_ID
from ..core.errors import ExternalServiceError
from ..schemas.schemas import ServiceRecord, SubscriptionRecord

logger = logging.getLogger(__name__)

LOOKUP_BY_RECORD_ID = "record_id"
LOOKUP_BY_SELLSY_ID = "sellsy_id"


def _lookup_service(table: Any, reference: str, lookup: str) -> Optional[Dict[str, Any]]:
    if lookup == LOOKUP_BY_SELLSY_ID:
        matches = table.find_by_field(SERVICE_SELLSY_ID, reference)
        if len(matches) > 1:
            logger.warning("Sellsy service %s matches %s records, using the first one", reference, len(matches))
        return matches[0] if matches else None
    return table.get(reference)


def rejection_reason(service: ServiceRecord, subscription: SubscriptionRecord) -> Optional[str]:
    if not service.is_active:
        return "is not active"
    if service.category != RECURRING_CATEGORY:
        return f"category is {service.category!r}, not {RECURRING_CATEGORY!r}"
    if not service.client_id or service.client_id != subscription.client_id:
        return f"client {service.client_id!r} does not match subscription client {subscription.client_id!r}"
    if service.remaining_occurrences <= 0:
        return f"no occurrences left ({service.billed_months}/{service.total_occurrences} billed)"
    if not service.sellsy_id:
        return "has no Sellsy reference"
    return None


def fetch_valid_services(
    table: Any, subscription: SubscriptionRecord, lookup: str = LOOKUP_BY_RECORD_ID
) -> List[ServiceRecord]:
    if not subscription.service_refs:
        logger.warning("Subscription %s: no linked services", subscription.id)
        return []
    if not subscription.client_id:
        logger.warning("Subscription %s: no Sellsy client id", subscription.id)
        return []

    services: List[ServiceRecord] = []
    for reference in subscription.service_refs:
        try:
            record = _lookup_service(table, reference, lookup)
        except ExternalServiceError as exc:
            logger.error("Service %s: lookup failed, skipped (%s)", reference, exc)
            continue
        if record is None:
            logger.warning("Service %s: not found", reference)
            continue
        try:
            service = ServiceRecord.from_airtable(record)
        except ValidationError as exc:
            logger.error("Service %s: unreadable record, skipped (%s)", reference, exc)
            continue

        reason = rejection_reason(service, subscription)
        if reason:
            logger.warning("Service %s (%s): %s, skipped", service.id, service.label, reason)
            continue
        logger.info("Service %s (%s): valid, %s occurrences remaining", service.id, service.label, service.remaining_occurrences)
        services.append(service)

    logger.info("Subscription %s: %s valid service(s)", subscription.id, len(services))
    return services
