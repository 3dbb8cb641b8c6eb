"""
Order Module - Delivery Estimator
===================================
Expected delivery = "time remaining from today" for the order's status.

The estimate is always computed from `now`, so it drifts forward while an
order sits in one status. It is display-only: an admin-set
Order.expected_delivery_date wins, and the estimate is never written back.
"""

import math
from datetime import datetime, timedelta
from typing import Optional, Tuple

from common.helpers import as_utc, now_utc
from modules.order.models import OrderStatus

REMAINING_WEEKS = {
    OrderStatus.PENDING: 12,
    OrderStatus.CONFIRMED: 10,
    OrderStatus.IN_PRODUCTION: 6,
    OrderStatus.FITTING: 2,
    OrderStatus.READY_FOR_DELIVERY: 0.43,   # ~3 days (shipping / pickup)
}

SOURCE_ADMIN = "admin"
SOURCE_ESTIMATE = "estimate"


def estimate_delivery(status, created_at: Optional[datetime], now: datetime) -> Optional[datetime]:
    """
    Expected delivery for an order in `status`, as seen at `now`.
    None for delivered / cancelled / refunded / rejected.
    `created_at` is accepted for call-site symmetry; the estimate does not use it.
    """
    try:
        status = OrderStatus(getattr(status, "value", status))
    except ValueError:
        return None
    weeks = REMAINING_WEEKS.get(status)
    if weeks is None:
        return None
    return now + timedelta(weeks=weeks)


def effective_delivery(order, now: Optional[datetime] = None) -> Tuple[Optional[datetime], Optional[str]]:
    """
    (date, source) to show for an order.
    The admin override wins whenever it is set; otherwise the estimate is used.
    """
    if order.expected_delivery_date is not None:
        return as_utc(order.expected_delivery_date), SOURCE_ADMIN
    now = now or now_utc()
    estimate = estimate_delivery(order.status, as_utc(order.created_at), now)
    if estimate is None:
        return None, None
    return estimate, SOURCE_ESTIMATE


def describe_delivery(date: Optional[datetime], now: Optional[datetime] = None) -> Optional[str]:
    """Human text for a delivery date: Overdue / Today / Tomorrow / In N days|weeks|months."""
    if date is None:
        return None
    now = now or now_utc()
    diff_days = math.ceil((as_utc(date) - as_utc(now)).total_seconds() / 86400)

    if diff_days < 0:
        return "Overdue"
    if diff_days == 0:
        return "Today"
    if diff_days == 1:
        return "Tomorrow"
    if diff_days < 7:
        return f"In {diff_days} days"
    if diff_days < 30:
        weeks = math.ceil(diff_days / 7)
        return f"In {weeks} week{'s' if weeks > 1 else ''}"
    months = math.ceil(diff_days / 30)
    return f"In {months} month{'s' if months > 1 else ''}"
