"""
Order Module - Lifecycle Rules
================================
Status groups and the transition table.

By default any status may be set by an admin (manual correction wins over
workflow enforcement). Strict mode checks ALLOWED_TRANSITIONS instead; it is
off unless ORDER_STRICT_TRANSITIONS=true.
"""

from config import settings
from common.exceptions import InvalidTransitionError, ValidationError
from modules.order.models import OrderStatus, PaymentStatus

HAPPY_PATH = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.IN_PRODUCTION,
    OrderStatus.FITTING,
    OrderStatus.READY_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)

# Reachable from any non-terminal status; stock goes back to the ledger.
RELEASING_STATUSES = frozenset({
    OrderStatus.CANCELLED,
    OrderStatus.REFUNDED,
    OrderStatus.REJECTED,
})

TERMINAL_STATUSES = RELEASING_STATUSES | {OrderStatus.DELIVERED}

CUSTOMER_CANCELLABLE = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})


def _build_allowed() -> dict:
    allowed = {}
    for i, status in enumerate(HAPPY_PATH[:-1]):
        allowed[status] = frozenset({HAPPY_PATH[i + 1]}) | RELEASING_STATUSES
    # Delivered orders can still be refunded or disputed.
    allowed[OrderStatus.DELIVERED] = frozenset({OrderStatus.REFUNDED, OrderStatus.REJECTED})
    for status in RELEASING_STATUSES:
        allowed[status] = frozenset()
    return allowed


ALLOWED_TRANSITIONS = _build_allowed()


def parse_status(value) -> OrderStatus:
    try:
        return OrderStatus(getattr(value, "value", value))
    except ValueError:
        raise ValidationError(f"Unknown order status: {value}")


def parse_payment_status(value) -> PaymentStatus:
    try:
        return PaymentStatus(getattr(value, "value", value))
    except ValueError:
        raise ValidationError(f"Unknown payment status: {value}")


def is_terminal(status) -> bool:
    return parse_status(status) in TERMINAL_STATUSES


def releases_stock(status) -> bool:
    return parse_status(status) in RELEASING_STATUSES


def can_customer_cancel(status) -> bool:
    return parse_status(status) in CUSTOMER_CANCELLABLE


def check_transition(current, target, strict: bool = None):
    """
    Raise InvalidTransitionError if `current -> target` is not allowed.
    Re-applying the current status is always allowed.
    """
    if strict is None:
        strict = settings.ORDER_STRICT_TRANSITIONS
    current = parse_status(current)
    target = parse_status(target)
    if not strict or current == target:
        return
    if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(current.value, target.value)
