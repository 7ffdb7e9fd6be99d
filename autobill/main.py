from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .config import Settings, get_settings
from .core.errors import AutobillError, ConfigurationError, ConnectivityError
from .core.logging import configure_logging
from .services.airtable import AirtableClient
from .services.billing_run import RunSummary, run_billing
from .services.sellsy import SellsyClient, TokenCache

logger = logging.getLogger(__name__)


def ensure_configured(settings: Settings) -> None:
    missing = settings.missing_required()
    if missing:
        raise ConfigurationError(f"Missing environment variables: {', '.join(missing)}")


def billing_zone(timezone_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigurationError(f"Unknown billing time zone: {timezone_name}") from None


def today_in(timezone_name: str) -> date:
    return datetime.now(billing_zone(timezone_name)).date()


def build_airtable_client(settings: Settings) -> AirtableClient:
    return AirtableClient(
        settings.airtable_api_key or "",
        settings.airtable_base_id or "",
        api_url=settings.airtable_api_url,
        timeout=settings.http_timeout_seconds,
        retry_attempts=settings.retry_attempts,
        retry_delay=settings.retry_delay_seconds,
    )


def build_sellsy_client(settings: Settings) -> SellsyClient:
    return SellsyClient(
        settings.sellsy_client_id or "",
        settings.sellsy_client_secret or "",
        api_url=settings.sellsy_api_url,
        token_url=settings.sellsy_token_url,
        timeout=settings.http_timeout_seconds,
        retry_attempts=settings.retry_attempts,
        retry_delay=settings.retry_delay_seconds,
        token_cache=TokenCache(refresh_margin=settings.token_refresh_margin_seconds),
    )


def check_connection(settings: Settings, sellsy: Optional[SellsyClient] = None) -> None:
    ensure_configured(settings)
    client = sellsy or build_sellsy_client(settings)
    try:
        client.check_connection()
    finally:
        if sellsy is None:
            client.close()
    logger.info("Sellsy API connection verified")


def run(
    settings: Settings,
    *,
    airtable: Optional[AirtableClient] = None,
    sellsy: Optional[SellsyClient] = None,
    today: Optional[date] = None,
) -> RunSummary:
    ensure_configured(settings)
    zone = billing_zone(settings.billing_timezone)
    as_of = today or datetime.now(zone).date()
    airtable_client = airtable or build_airtable_client(settings)
    sellsy_client = sellsy or build_sellsy_client(settings)
    try:
        sellsy_client.check_connection()
        summary = run_billing(
            subscriptions_table=airtable_client.table(settings.subscriptions_table),
            services_table=airtable_client.table(settings.services_table),
            billing=sellsy_client,
            payment_method_labels=settings.payment_method_labels,
            today=as_of,
            zone=zone,
            subscriptions_view=settings.subscriptions_view,
            service_lookup=settings.service_lookup,
            default_tax_rate=Decimal(str(settings.default_tax_rate)),
        )
    finally:
        if airtable is None:
            airtable_client.close()
        if sellsy is None:
            sellsy_client.close()
    return summary


def main(settings: Optional[Settings] = None) -> int:
    settings = settings or get_settings()
    configure_logging(settings.log_level.upper(), json_output=settings.log_json)  # type: ignore[arg-type]
    logger.info("Starting daily invoice run")
    try:
        summary = run(settings)
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return 1
    except ConnectivityError as exc:
        logger.error("Connectivity error: %s", exc)
        return 1
    except AutobillError as exc:
        logger.error("Invoice run aborted: %s", exc)
        return 1

    logger.info(
        "Run finished: %s invoice(s) generated, %s failed, %s/%s subscription(s) due; "
        "%s payment configuration failure(s), %s occurrence update failure(s)",
        summary.invoices_generated,
        summary.invoices_failed,
        summary.subscriptions_due,
        summary.subscriptions_checked,
        summary.payment_configuration_failures,
        summary.occurrence_update_failures,
    )
    return 0
