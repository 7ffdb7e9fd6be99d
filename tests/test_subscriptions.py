from datetime import date, datetime, timezone

import pytest

from autobill import constants as c
from autobill.schemas.schemas import SubscriptionRecord
from autobill.services.subscriptions import (
    fetch_active_subscriptions,
    is_due_today,
    parse_billing_day,
    parse_start_date,
)


def _subscription(billing_day, start_date=None, status=c.ACTIVE_STATUS):
    return SubscriptionRecord(id="recSub0001", status=status, billing_day=billing_day, start_date=start_date)


def test_billing_day_matching_today_is_due():
    assert is_due_today(_subscription(15), date(2025, 4, 15)) is True


def test_billing_day_not_matching_today_is_not_due():
    assert is_due_today(_subscription(15), date(2025, 4, 30)) is False
    assert is_due_today(_subscription(15), date(2025, 4, 14)) is False


def test_missing_day_rolls_to_month_end():
    assert is_due_today(_subscription(31), date(2025, 4, 30)) is True
    assert is_due_today(_subscription(30), date(2025, 2, 28)) is True
    assert is_due_today(_subscription(29), date(2024, 2, 29)) is True


def test_month_end_rollover_only_on_the_last_day():
    assert is_due_today(_subscription(31), date(2025, 4, 29)) is False
    # February 2024 has a 29th, so day 29 is not rolled onto the 28th
    assert is_due_today(_subscription(29), date(2024, 2, 28)) is False
    # A 31-day month bills day 31 on the 31st only
    assert is_due_today(_subscription(31), date(2025, 3, 30)) is False
    assert is_due_today(_subscription(31), date(2025, 3, 31)) is True


@pytest.mark.parametrize("billing_day", [None, "", "abc", 0, 32, -1, 15.5, True, [], [3, 4]])
def test_invalid_billing_day_is_never_due(billing_day, caplog):
    caplog.set_level("WARNING")
    assert is_due_today(_subscription(billing_day), date(2025, 4, 15)) is False
    assert "invalid billing day" in caplog.text


@pytest.mark.parametrize("value, expected", [(15, 15), ("15", 15), (" 7 ", 7), (31.0, 31), ([12], 12), ("1", 1)])
def test_parse_billing_day_accepts_numeric_encodings(value, expected):
    assert parse_billing_day(value) == expected


def test_future_start_date_blocks_billing():
    today = date(2025, 4, 15)
    assert is_due_today(_subscription(15, start_date="2025-04-16"), today) is False
    assert is_due_today(_subscription(15, start_date="2025-04-15"), today) is True
    assert is_due_today(_subscription(15, start_date="2024-01-01T00:00:00.000Z"), today) is True


def test_future_start_date_blocks_month_end_rollover():
    assert is_due_today(_subscription(31, start_date="2025-05-01"), date(2025, 4, 30)) is False


def test_start_date_time_is_read_in_the_billing_time_zone():
    today = date(2025, 4, 15)
    # 23:30 UTC on the 15th is already the 16th in Paris
    assert is_due_today(_subscription(15, start_date="2025-04-15T23:30:00.000Z"), today) is False
    assert is_due_today(_subscription(15, start_date="2025-04-15T23:30:00.000Z"), today, timezone.utc) is True


def test_parse_start_date_converts_utc_date_times():
    assert parse_start_date("2025-04-14T23:30:00.000Z") == date(2025, 4, 15)
    assert parse_start_date("2025-04-14T21:59:00Z") == date(2025, 4, 14)
    assert parse_start_date("2025-04-14T23:30:00") == date(2025, 4, 14)
    assert parse_start_date(datetime(2025, 4, 14, 23, 30, tzinfo=timezone.utc)) == date(2025, 4, 15)
    assert parse_start_date("2025-04-14") == date(2025, 4, 14)


def test_unreadable_start_date_is_not_due(caplog):
    caplog.set_level("WARNING")
    assert is_due_today(_subscription(15, start_date="next week"), date(2025, 4, 15)) is False
    assert "invalid start date" in caplog.text


def test_fetch_active_subscriptions_filters_on_status(create_subscription, subscriptions_table):
    active = create_subscription()
    create_subscription(**{c.SUBSCRIPTION_STATUS: "Suspendu"})
    create_subscription(**{c.SUBSCRIPTION_STATUS: "Résilié"})

    subscriptions = fetch_active_subscriptions(subscriptions_table, view="Grid view")

    assert [subscription.id for subscription in subscriptions] == [active["id"]]
    assert subscriptions[0].client_id == "4242"
    assert subscriptions[0].billing_day == 15


def test_fetch_active_subscriptions_skips_unreadable_records(create_subscription, subscriptions_table):
    create_subscription(**{c.SUBSCRIPTION_NAME: {"unexpected": "object"}})
    readable = create_subscription()

    subscriptions = fetch_active_subscriptions(subscriptions_table)

    assert [subscription.id for subscription in subscriptions] == [readable["id"]]


def test_subscription_record_normalizes_airtable_cells():
    subscription = SubscriptionRecord.from_airtable(
        {
            "id": "recSub0009",
            "fields": {
                c.SUBSCRIPTION_STATUS: c.ACTIVE_STATUS,
                c.SUBSCRIPTION_CLIENT_ID: [4242.0],
                c.SUBSCRIPTION_SERVICES: "recSrv0001",
            },
        }
    )

    assert subscription.is_active
    assert subscription.client_id == "4242"
    assert subscription.service_refs == ["recSrv0001"]
    assert subscription.label == "Sans nom"
