from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, tzinfo
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import ValidationError

from ..constants import DEFAULT_TAX_RATE
from ..core.errors import AutobillError
from .invoicing import issue_invoice
from .payment_methods import PaymentMethodResolver
from .service_validation import LOOKUP_BY_RECORD_ID, fetch_valid_services
from .subscriptions import fetch_active_subscriptions, is_due_today

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    subscriptions_checked: int = 0
    subscriptions_due: int = 0
    invoices_generated: int = 0
    invoices_failed: int = 0
    payment_configuration_failures: int = 0
    occurrence_update_failures: int = 0
    invoice_ids: List[Any] = field(default_factory=list)


def run_billing(
    *,
    subscriptions_table: Any,
    services_table: Any,
    billing: Any,
    payment_method_labels: List[str],
    today: Optional[date] = None,
    zone: Optional[tzinfo] = None,
    subscriptions_view: Optional[str] = None,
    service_lookup: str = LOOKUP_BY_RECORD_ID,
    default_tax_rate: Decimal = DEFAULT_TAX_RATE,
) -> RunSummary:
    as_of = today or date.today()
    summary = RunSummary()
    resolver = PaymentMethodResolver(billing, payment_method_labels)

    subscriptions = fetch_active_subscriptions(subscriptions_table, view=subscriptions_view)
    logger.info("%s active subscription(s) found for %s", len(subscriptions), as_of.isoformat())

    for subscription in subscriptions:
        summary.subscriptions_checked += 1
        if not subscription.is_active:
            logger.info("Subscription %s: status %r, skipped", subscription.id, subscription.status)
            continue
        if not is_due_today(subscription, as_of, zone):
            continue
        summary.subscriptions_due += 1
        logger.info("Processing subscription %s: %s", subscription.id, subscription.label)

        services = fetch_valid_services(services_table, subscription, lookup=service_lookup)
        if not services:
            logger.warning("Subscription %s: nothing to invoice", subscription.id)
            continue

        for service in services:
            try:
                issued = issue_invoice(
                    subscription,
                    service,
                    billing=billing,
                    services_table=services_table,
                    resolver=resolver,
                    today=as_of,
                    default_tax_rate=default_tax_rate,
                )
            except (AutobillError, ValidationError) as exc:
                summary.invoices_failed += 1
                logger.error("Service %s: invoice not generated (%s)", service.id, exc)
                continue
            summary.invoices_generated += 1
            summary.invoice_ids.append(issued.invoice_id)
            if not issued.payment_configured:
                summary.payment_configuration_failures += 1
            if issued.occurrences is None:
                summary.occurrence_update_failures += 1

    return summary
