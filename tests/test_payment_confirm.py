import httpx
import pytest

from config import settings
from conftest import hmac_hex
from modules.order.models import Order, OrderStatusLog
from modules.order.service import order_service, SettlementOutcome
from modules.payment.gateways import GatewayCreateResult, GatewayVerifyResult, get_gateway


@pytest.fixture
def checkout(monkeypatch, client, make_user, make_product, make_address, auth_headers):
    """Returns (user, headers, product, order_id) for an order awaiting Stripe payment."""
    monkeypatch.setattr(
        get_gateway("stripe"), "create_payment",
        lambda req: GatewayCreateResult(success=True, gateway_ref="pi_test_1",
                                        client_params={"clientSecret": "s", "paymentIntentId": "pi_test_1"}),
    )
    user = make_user()
    headers = auth_headers(user)
    product = make_product(price="1000", stock=5)
    client.post("/api/cart", json={"productId": product.id, "quantity": 2}, headers=headers)
    order = client.post("/api/payments/create-intent",
                        json={"shippingAddressId": make_address(user).id}, headers=headers).json()["order"]
    return user, headers, product, order["id"]


@pytest.fixture
def stripe_verifies(monkeypatch):
    monkeypatch.setattr(
        get_gateway("stripe"), "verify_payment",
        lambda params: GatewayVerifyResult(success=True, ref_number=params["paymentIntentId"]),
    )


def test_confirm_settles_order(db, client, checkout, stripe_verifies):
    user, headers, product, order_id = checkout

    resp = client.post("/api/payments/confirm",
                       json={"orderId": order_id, "paymentIntentId": "pi_test_1"}, headers=headers)

    assert resp.status_code == 200
    order = resp.json()["order"]
    assert order["status"] == "PAID"
    assert order["paymentStatus"] == "PAID"
    assert order["paidAt"] is not None

    db.expire_all()
    assert product.stock == 3
    assert client.get("/api/cart", headers=headers).json()["items"] == []
    statuses = [log.new_status for log in db.query(OrderStatusLog).filter(OrderStatusLog.order_id == order_id)]
    assert statuses == ["CREATED", "AWAITING_PAYMENT", "PAID"]


def test_confirming_paid_order_is_400(db, client, checkout, stripe_verifies):
    user, headers, product, order_id = checkout
    payload = {"orderId": order_id, "paymentIntentId": "pi_test_1"}
    client.post("/api/payments/confirm", json=payload, headers=headers)

    resp = client.post("/api/payments/confirm", json=payload, headers=headers)

    assert resp.status_code == 400
    assert resp.json()["error"] == "Order already paid"
    db.expire_all()
    assert product.stock == 3


def test_failed_verification_keeps_order_open(db, monkeypatch, client, checkout):
    user, headers, product, order_id = checkout
    monkeypatch.setattr(
        get_gateway("stripe"), "verify_payment",
        lambda params: GatewayVerifyResult(success=False, error_message="Payment not completed"),
    )

    resp = client.post("/api/payments/confirm",
                       json={"orderId": order_id, "paymentIntentId": "pi_test_1"}, headers=headers)

    assert resp.status_code == 400
    assert resp.json()["error"] == "Payment not completed"
    db.expire_all()
    assert db.get(Order, order_id).status == "AWAITING_PAYMENT"


def test_stock_conflict_cancels_and_flags_refund(db, client, checkout, stripe_verifies):
    user, headers, product, order_id = checkout
    product.stock = 1
    db.commit()

    resp = client.post("/api/payments/confirm",
                       json={"orderId": order_id, "paymentIntentId": "pi_test_1"}, headers=headers)

    assert resp.status_code == 409
    assert resp.json()["details"] == {"orderId": order_id}

    db.expire_all()
    order = db.get(Order, order_id)
    assert order.status == "CANCELLED"
    assert order.refund_required is True
    assert order.payment_status == "FAILED"
    assert product.stock == 1


def test_confirm_on_cancelled_order_flags_refund(db, client, checkout, stripe_verifies):
    user, headers, product, order_id = checkout
    order_service.fail_payment(db, order_id, reason="card_declined")
    db.commit()

    resp = client.post("/api/payments/confirm",
                       json={"orderId": order_id, "paymentIntentId": "pi_test_1"}, headers=headers)

    assert resp.status_code == 409
    assert resp.json()["details"] == {"orderId": order_id}
    db.expire_all()
    order = db.get(Order, order_id)
    assert order.status == "CANCELLED"
    assert order.refund_required is True
    assert order.payment_ref == "pi_test_1"
    assert product.stock == 5

    again = order_service.settle_payment(db, order_id, "pi_test_1")
    assert again == SettlementOutcome.CAPTURED_AFTER_CANCEL
    assert db.query(OrderStatusLog).filter(
        OrderStatusLog.order_id == order_id, OrderStatusLog.old_status == "CANCELLED",
    ).count() == 1


def test_other_users_order_is_404(client, checkout, make_user, auth_headers, stripe_verifies):
    _, _, _, order_id = checkout
    stranger = make_user()

    resp = client.post("/api/payments/confirm",
                       json={"orderId": order_id, "paymentIntentId": "pi_test_1"}, headers=auth_headers(stranger))
    assert resp.status_code == 404


def test_settle_payment_is_idempotent(db, checkout):
    _, _, product, order_id = checkout

    first = order_service.settle_payment(db, order_id, "pi_test_1", actor="test")
    db.commit()
    second = order_service.settle_payment(db, order_id, "pi_test_1", actor="test")
    db.commit()

    assert first == SettlementOutcome.SETTLED
    assert second == SettlementOutcome.ALREADY_SETTLED
    db.expire_all()
    assert product.stock == 3


def test_stripe_verify_rejects_intent_for_other_order():
    result = get_gateway("stripe").verify_payment(
        {"paymentIntentId": "pi_other", "orderId": 1, "gatewayRef": "pi_test_1"}
    )
    assert not result.success


def test_razorpay_confirm_checks_signature_and_payment(db, monkeypatch, client, make_user, make_product,
                                                      make_address, auth_headers):
    gateway = get_gateway("razorpay")
    monkeypatch.setattr(
        gateway, "create_payment",
        lambda req: GatewayCreateResult(success=True, gateway_ref="order_rzp_1",
                                        client_params={"razorpayOrderId": "order_rzp_1"}),
    )
    monkeypatch.setattr(
        "modules.payment.gateways.razorpay.httpx.get",
        lambda url, auth=None, timeout=None: httpx.Response(
            200, json={"id": "pay_1", "status": "captured", "order_id": "order_rzp_1"},
        ),
    )
    user = make_user()
    headers = auth_headers(user)
    product = make_product(stock=5)
    client.post("/api/cart", json={"productId": product.id}, headers=headers)
    order = client.post("/api/payments/create-intent",
                        json={"paymentGateway": "razorpay", "shippingAddressId": make_address(user).id},
                        headers=headers).json()["order"]

    payload = {
        "gateway": "razorpay",
        "orderId": order["id"],
        "razorpayOrderId": "order_rzp_1",
        "razorpayPaymentId": "pay_1",
        "razorpaySignature": "0" * 64,
    }
    bad = client.post("/api/payments/confirm", json=payload, headers=headers)
    assert bad.status_code == 400
    assert bad.json()["error"] == "Invalid payment signature"

    payload["razorpaySignature"] = hmac_hex(settings.RAZORPAY_KEY_SECRET, "order_rzp_1|pay_1")
    good = client.post("/api/payments/confirm", json=payload, headers=headers)
    assert good.status_code == 200
    assert good.json()["order"]["status"] == "PAID"
    assert good.json()["order"]["paymentRef"] == "pay_1"
