"""Delivery estimator: remaining-time table, admin override, display text."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from modules.order.delivery import (
    SOURCE_ADMIN, SOURCE_ESTIMATE, describe_delivery, effective_delivery, estimate_delivery,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
CREATED = datetime(2026, 1, 1, 9, 30, tzinfo=timezone.utc)


@pytest.mark.parametrize("status, weeks", [
    ("pending", 12),
    ("confirmed", 10),
    ("in_production", 6),
    ("fitting", 2),
    ("ready_for_delivery", 0.43),
])
def test_estimate_is_now_plus_remaining_weeks(status, weeks):
    assert estimate_delivery(status, CREATED, NOW) == NOW + timedelta(weeks=weeks)


@pytest.mark.parametrize("status", ["delivered", "cancelled", "refunded", "rejected", "bogus"])
def test_no_estimate_for_terminal_status(status):
    assert estimate_delivery(status, CREATED, NOW) is None


def test_estimate_ignores_created_at():
    assert estimate_delivery("fitting", CREATED, NOW) == estimate_delivery("fitting", NOW, NOW)


def test_estimate_never_moves_backward_within_a_status():
    previous = None
    for hours in range(0, 24 * 30, 7):
        current = estimate_delivery("in_production", CREATED, NOW + timedelta(hours=hours))
        if previous is not None:
            assert current >= previous
        previous = current


def test_admin_override_wins():
    override = datetime(2026, 6, 1, tzinfo=timezone.utc)
    order = SimpleNamespace(status="pending", created_at=CREATED, expected_delivery_date=override)

    assert effective_delivery(order, NOW) == (override, SOURCE_ADMIN)
    # never written back
    assert order.expected_delivery_date == override


def test_override_on_naive_datetime_is_read_as_utc():
    order = SimpleNamespace(status="pending", created_at=CREATED,
                            expected_delivery_date=datetime(2026, 6, 1))

    date, source = effective_delivery(order, NOW)

    assert date == datetime(2026, 6, 1, tzinfo=timezone.utc)
    assert source == SOURCE_ADMIN


def test_fallback_to_estimate():
    order = SimpleNamespace(status="confirmed", created_at=CREATED, expected_delivery_date=None)

    assert effective_delivery(order, NOW) == (NOW + timedelta(weeks=10), SOURCE_ESTIMATE)
    assert order.expected_delivery_date is None


def test_no_date_for_finished_order():
    order = SimpleNamespace(status="delivered", created_at=CREATED, expected_delivery_date=None)
    assert effective_delivery(order, NOW) == (None, None)


@pytest.mark.parametrize("delta, text", [
    (timedelta(days=-2), "Overdue"),
    (timedelta(0), "Today"),
    (timedelta(days=1), "Tomorrow"),
    (timedelta(days=3), "In 3 days"),
    (timedelta(days=7), "In 1 week"),
    (timedelta(days=15), "In 3 weeks"),
    (timedelta(days=30), "In 1 month"),
    (timedelta(weeks=12), "In 3 months"),
])
def test_describe_delivery(delta, text):
    assert describe_delivery(NOW + delta, NOW) == text


def test_describe_nothing():
    assert describe_delivery(None, NOW) is None
