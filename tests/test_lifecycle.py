import pytest

from common.exceptions import InvalidTransitionError
from modules.order.lifecycle import allowed_targets, assert_transition, can_transition, is_terminal
from modules.order.models import Order


def _order(status, method="stripe", **kwargs):
    return Order(status=status, payment_method=method, **kwargs)


@pytest.mark.parametrize("current,target", [
    ("CREATED", "AWAITING_PAYMENT"),
    ("CREATED", "CANCELLED"),
    ("AWAITING_PAYMENT", "PAID"),
    ("AWAITING_PAYMENT", "CANCELLED"),
    ("PAID", "FULFILLING"),
    ("PAID", "REFUNDED"),
    ("FULFILLING", "SHIPPED"),
    ("FULFILLING", "REFUNDED"),
    ("SHIPPED", "DELIVERED"),
    ("DELIVERED", "REFUNDED"),
])
def test_prepaid_edges(current, target):
    assert can_transition(_order(current), target)


@pytest.mark.parametrize("current,target", [
    ("CREATED", "PAID"),
    ("AWAITING_PAYMENT", "FULFILLING"),
    ("PAID", "CANCELLED"),
    ("FULFILLING", "CANCELLED"),
    ("SHIPPED", "CANCELLED"),
    ("DELIVERED", "SHIPPED"),
    ("CANCELLED", "AWAITING_PAYMENT"),
    ("REFUNDED", "PAID"),
])
def test_prepaid_forbidden_edges(current, target):
    assert not can_transition(_order(current), target)


def test_cod_skips_paid():
    order = _order("AWAITING_PAYMENT", method="COD")
    assert can_transition(order, "FULFILLING")
    assert not can_transition(order, "PAID")
    assert can_transition(_order("FULFILLING", method="COD"), "CANCELLED")
    assert not can_transition(_order("FULFILLING", method="COD"), "REFUNDED")


def test_terminal_states():
    assert is_terminal("CANCELLED")
    assert is_terminal("REFUNDED")
    assert not is_terminal("DELIVERED")
    assert allowed_targets(_order("CANCELLED")) == []


def test_assert_transition_raises():
    with pytest.raises(InvalidTransitionError) as exc:
        assert_transition(_order("SHIPPED"), "PAID")
    assert exc.value.status_code == 400


@pytest.mark.parametrize("status,method,payment_error,expected", [
    ("CREATED", "stripe", None, "PENDING"),
    ("AWAITING_PAYMENT", "stripe", None, "PENDING"),
    ("PAID", "stripe", None, "PAID"),
    ("SHIPPED", "razorpay", None, "PAID"),
    ("CANCELLED", "stripe", None, "CANCELLED"),
    ("CANCELLED", "stripe", "card_declined", "FAILED"),
    ("REFUNDED", "stripe", None, "REFUNDED"),
    ("SHIPPED", "COD", None, "PENDING"),
    ("DELIVERED", "COD", None, "PAID"),
])
def test_payment_status_is_derived(status, method, payment_error, expected):
    assert _order(status, method=method, payment_error=payment_error).payment_status == expected
