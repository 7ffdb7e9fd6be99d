from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from pydantic import ValidationError

from ..constants import DEFAULT_TAX_RATE
from ..core.errors import AutobillError, InvoiceDataError
from ..schemas.schemas import InvoiceRequest, ServiceRecord, SubscriptionRecord
from .occurrences import OccurrenceCount, decrement_occurrences
from .payment_methods import PaymentMethodResolver

logger = logging.getLogger(__name__)


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def build_invoice_request(
    subscription: SubscriptionRecord,
    service: ServiceRecord,
    default_tax_rate: Decimal = DEFAULT_TAX_RATE,
) -> InvoiceRequest:
    price = _to_decimal(service.price)
    if price is None:
        raise InvoiceDataError(f"Service {service.id}: price {service.price!r} is not a number")
    tax_rate = _to_decimal(service.tax_rate)
    if tax_rate is None or tax_rate < 0:
        tax_rate = default_tax_rate
    try:
        client_id = int(subscription.client_id or "")
    except ValueError:
        raise InvoiceDataError(
            f"Subscription {subscription.id}: Sellsy client id {subscription.client_id!r} is not numeric"
        ) from None
    if not service.sellsy_id:
        raise InvoiceDataError(f"Service {service.id}: missing Sellsy reference")
    return InvoiceRequest(
        client_id=client_id,
        service_reference=service.sellsy_id,
        service_name=service.name or service.sellsy_id,
        price=price,
        tax_rate=tax_rate,
    )


@dataclass
class IssuedInvoice:
    invoice_id: Any
    payment_configured: bool
    occurrences: Optional[OccurrenceCount]


def _configure_payment(billing: Any, resolver: PaymentMethodResolver, invoice_id: Any) -> bool:
    try:
        method = resolver.resolve()
        if method is None:
            logger.warning("Invoice %s: issued without a direct-debit payment method", invoice_id)
            return False
        billing.configure_direct_debit(invoice_id, method.id)
    except AutobillError as exc:
        logger.error("Invoice %s: payment method configuration failed, invoice kept (%s)", invoice_id, exc)
        return False
    logger.info("Invoice %s: direct debit configured with '%s'", invoice_id, method.label)
    return True


def issue_invoice(
    subscription: SubscriptionRecord,
    service: ServiceRecord,
    *,
    billing: Any,
    services_table: Any,
    resolver: PaymentMethodResolver,
    today: date,
    default_tax_rate: Decimal = DEFAULT_TAX_RATE,
) -> IssuedInvoice:
    """Create and validate the invoice for one service, then count the cycle.

    Creation and validation errors propagate and leave the counters untouched.
    Payment configuration and counter updates only log their failures: the
    invoice already exists on the Sellsy side at that point.
    """
    request = build_invoice_request(subscription, service, default_tax_rate)
    created = billing.create_invoice(request, today)
    invoice_id = created["id"]
    logger.info("Invoice %s created for service %s (%s)", invoice_id, service.id, service.label)
    billing.validate_invoice(invoice_id, today)
    logger.info("Invoice %s validated", invoice_id)

    payment_configured = _configure_payment(billing, resolver, invoice_id)

    try:
        occurrences = decrement_occurrences(services_table, service.id)
    except (AutobillError, ValidationError) as exc:
        logger.error(
            "Service %s: invoice %s issued but occurrence counters were not updated, reconcile manually (%s)",
            service.id,
            invoice_id,
            exc,
        )
        occurrences = None
    return IssuedInvoice(invoice_id=invoice_id, payment_configured=payment_configured, occurrences=occurrences)
