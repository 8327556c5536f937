"""
Order Module - Lifecycle
=========================
The single source of truth for order status changes.
Prepaid orders pass through PAID; cash-on-delivery orders go straight from
AWAITING_PAYMENT to FULFILLING and are paid on delivery.
CANCELLED and REFUNDED are terminal.
"""

from typing import Callable, Dict, FrozenSet, List, Tuple

from common.exceptions import InvalidTransitionError
from modules.order.models import Order, OrderStatus as S


TRANSITIONS: Dict[str, FrozenSet[str]] = {
    S.CREATED.value: frozenset({S.AWAITING_PAYMENT.value, S.CANCELLED.value}),
    S.AWAITING_PAYMENT.value: frozenset({S.PAID.value, S.CANCELLED.value, S.FULFILLING.value}),
    S.PAID.value: frozenset({S.FULFILLING.value, S.REFUNDED.value}),
    S.FULFILLING.value: frozenset({S.SHIPPED.value, S.CANCELLED.value, S.REFUNDED.value}),
    S.SHIPPED.value: frozenset({S.DELIVERED.value}),
    S.DELIVERED.value: frozenset({S.REFUNDED.value}),
    S.CANCELLED.value: frozenset(),
    S.REFUNDED.value: frozenset(),
}


def _is_cod(order: Order) -> bool:
    return order.is_cod


def _is_prepaid(order: Order) -> bool:
    return not order.is_cod


# Extra conditions on specific edges
GUARDS: Dict[Tuple[str, str], Callable[[Order], bool]] = {
    (S.AWAITING_PAYMENT.value, S.PAID.value): _is_prepaid,
    (S.AWAITING_PAYMENT.value, S.FULFILLING.value): _is_cod,
    (S.FULFILLING.value, S.CANCELLED.value): _is_cod,
    (S.FULFILLING.value, S.REFUNDED.value): _is_prepaid,
}


def can_transition(order: Order, target: str) -> bool:
    if target not in TRANSITIONS.get(order.status, frozenset()):
        return False
    guard = GUARDS.get((order.status, target))
    return guard(order) if guard else True


def assert_transition(order: Order, target: str):
    if not can_transition(order, target):
        raise InvalidTransitionError(order.status, target)


def allowed_targets(order: Order) -> List[str]:
    return sorted(t for t in TRANSITIONS.get(order.status, frozenset()) if can_transition(order, t))


def is_terminal(status: str) -> bool:
    return not TRANSITIONS.get(status)
