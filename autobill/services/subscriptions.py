from __future__ import annotations

import calendar
import logging
from datetime import date, datetime, tzinfo
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from ..constants import ACTIVE_STATUS, BILLING_TIMEZONE, MAX_BILLING_DAY, MIN_BILLING_DAY, SUBSCRIPTION_STATUS
from ..schemas.schemas import SubscriptionRecord

logger = logging.getLogger(__name__)


def fetch_active_subscriptions(table: Any, view: Optional[str] = None) -> List[SubscriptionRecord]:
    records = table.find_by_field(SUBSCRIPTION_STATUS, ACTIVE_STATUS, view=view)
    subscriptions: List[SubscriptionRecord] = []
    for record in records:
        try:
            subscriptions.append(SubscriptionRecord.from_airtable(record))
        except ValidationError as exc:
            logger.error("Subscription %s: unreadable record, skipped (%s)", record.get("id"), exc)
    return subscriptions


def parse_billing_day(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, list):
        # Lookup and rollup cells come back as lists
        value = value[0] if len(value) == 1 else None
        if value is None:
            return None
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    if not number.is_finite() or number != number.to_integral_value():
        return None
    day = int(number)
    if not MIN_BILLING_DAY <= day <= MAX_BILLING_DAY:
        return None
    return day


def parse_start_date(value: Any, zone: Optional[tzinfo] = None) -> date:
    """Calendar date of a start date cell, seen from the billing time zone.

    Date cells are plain ISO dates. Date-time cells come back in UTC with a
    trailing `Z` and are converted before the date is taken.
    """
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        return value
    else:
        text = str(value).strip()
        if len(text) == 10:
            return date.fromisoformat(text)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        moment = datetime.fromisoformat(text)
    if moment.tzinfo is not None:
        moment = moment.astimezone(zone or ZoneInfo(BILLING_TIMEZONE))
    return moment.date()


def last_day_of_month(day: date) -> int:
    return calendar.monthrange(day.year, day.month)[1]


def is_due_today(subscription: SubscriptionRecord, today: date, zone: Optional[tzinfo] = None) -> bool:
    billing_day = parse_billing_day(subscription.billing_day)
    if billing_day is None:
        logger.warning(
            "Subscription %s: invalid billing day %r, expected an integer between %s and %s",
            subscription.id,
            subscription.billing_day,
            MIN_BILLING_DAY,
            MAX_BILLING_DAY,
        )
        return False

    if subscription.start_date not in (None, ""):
        try:
            start = parse_start_date(subscription.start_date, zone)
        except ValueError:
            logger.warning("Subscription %s: invalid start date %r", subscription.id, subscription.start_date)
            return False
        if start > today:
            logger.info("Subscription %s: starts on %s, not billed yet", subscription.id, start.isoformat())
            return False

    month_end = last_day_of_month(today)
    if today.day == month_end and billing_day > month_end:
        logger.info(
            "Subscription %s: billing day %s does not exist this month, billing on the %s",
            subscription.id,
            billing_day,
            month_end,
        )
        return True

    due = today.day == billing_day
    if due:
        logger.info("Subscription %s: billing day (%s) matches today", subscription.id, billing_day)
    else:
        logger.info("Subscription %s: billing day (%s) is not today (%s)", subscription.id, billing_day, today.day)
    return due
