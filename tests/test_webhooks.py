import json
import time

import pytest

from config import settings
from conftest import hmac_hex
from modules.order.models import Order
from modules.payment.gateways import GatewayCreateResult, get_gateway
from modules.webhook_log.models import WebhookLog


@pytest.fixture
def pending_order(monkeypatch, client, make_user, make_product, make_address, auth_headers):
    """Order #id awaiting payment on both gateways' refs (stripe: pi_wh_1)."""
    monkeypatch.setattr(
        get_gateway("stripe"), "create_payment",
        lambda req: GatewayCreateResult(success=True, gateway_ref="pi_wh_1", client_params={}),
    )
    user = make_user()
    headers = auth_headers(user)
    product = make_product(price="1000", stock=5)
    client.post("/api/cart", json={"productId": product.id, "quantity": 2}, headers=headers)
    order = client.post("/api/payments/create-intent",
                        json={"shippingAddressId": make_address(user).id}, headers=headers).json()["order"]
    return order["id"], product


def _stripe_event(event_type, order_id, intent_id="pi_wh_1", **obj):
    return json.dumps({
        "id": "evt_1",
        "type": event_type,
        "data": {"object": {"id": intent_id, "metadata": {"orderId": str(order_id)}, **obj}},
    }).encode()


def _stripe_headers(body: bytes, timestamp=None, secret=None):
    ts = str(timestamp or int(time.time()))
    sig = hmac_hex(secret or settings.STRIPE_WEBHOOK_SECRET, f"{ts}.".encode() + body)
    return {"stripe-signature": f"t={ts},v1={sig}", "content-type": "application/json"}


def test_stripe_succeeded_settles_order(db, client, pending_order):
    order_id, product = pending_order
    body = _stripe_event("payment_intent.succeeded", order_id)

    resp = client.post("/api/webhooks/stripe", content=body, headers=_stripe_headers(body))

    assert resp.status_code == 200
    assert resp.json() == {"received": True}
    db.expire_all()
    assert db.get(Order, order_id).status == "PAID"
    assert product.stock == 3
    log = db.query(WebhookLog).one()
    assert (log.source, log.event_type, log.success) == ("stripe", "payment_intent.succeeded", True)


def test_stripe_replay_is_a_noop(db, client, pending_order):
    order_id, product = pending_order
    body = _stripe_event("payment_intent.succeeded", order_id)

    client.post("/api/webhooks/stripe", content=body, headers=_stripe_headers(body))
    resp = client.post("/api/webhooks/stripe", content=body, headers=_stripe_headers(body))

    assert resp.status_code == 200
    db.expire_all()
    assert db.get(Order, order_id).status == "PAID"
    assert product.stock == 3
    assert [log.success for log in db.query(WebhookLog).order_by(WebhookLog.id)] == [True, True]


def test_tampered_signature_rejected_before_any_write(db, client, pending_order):
    order_id, product = pending_order
    body = _stripe_event("payment_intent.succeeded", order_id)
    headers = _stripe_headers(body)
    tampered = body.replace(b"evt_1", b"evt_2")

    resp = client.post("/api/webhooks/stripe", content=tampered, headers=headers)

    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid signature"
    db.expire_all()
    assert db.get(Order, order_id).status == "AWAITING_PAYMENT"
    assert product.stock == 5
    assert db.query(WebhookLog).count() == 0


def test_stale_stripe_timestamp_rejected(client, pending_order):
    order_id, _ = pending_order
    body = _stripe_event("payment_intent.succeeded", order_id)

    resp = client.post("/api/webhooks/stripe", content=body,
                       headers=_stripe_headers(body, timestamp=int(time.time()) - 3600))
    assert resp.status_code == 400


def test_stripe_payment_failed_cancels_order(db, client, pending_order):
    order_id, _ = pending_order
    body = _stripe_event("payment_intent.payment_failed", order_id,
                         last_payment_error={"message": "Your card was declined."})

    assert client.post("/api/webhooks/stripe", content=body, headers=_stripe_headers(body)).status_code == 200

    db.expire_all()
    order = db.get(Order, order_id)
    assert order.status == "CANCELLED"
    assert order.payment_status == "FAILED"
    assert order.payment_error == "Your card was declined."


def test_unhandled_stripe_event_is_logged_as_ignored(db, client, pending_order):
    order_id, _ = pending_order
    body = _stripe_event("charge.refund.updated", order_id)

    assert client.post("/api/webhooks/stripe", content=body, headers=_stripe_headers(body)).status_code == 200
    db.expire_all()
    log = db.query(WebhookLog).one()
    assert log.success is False
    assert log.message.startswith("ignored")


def _razorpay_event(order_id, event="payment.captured"):
    return json.dumps({
        "event": event,
        "payload": {
            "payment": {"entity": {"id": "pay_wh_1", "order_id": "order_rzp_wh", "status": "captured",
                                   "notes": {"orderId": str(order_id)}}},
        },
    }).encode()


@pytest.fixture
def pending_razorpay_order(monkeypatch, client, make_user, make_product, make_address, auth_headers):
    monkeypatch.setattr(
        get_gateway("razorpay"), "create_payment",
        lambda req: GatewayCreateResult(success=True, gateway_ref="order_rzp_wh", client_params={}),
    )
    user = make_user()
    headers = auth_headers(user)
    client.post("/api/cart", json={"productId": make_product(stock=5).id}, headers=headers)
    return client.post("/api/payments/create-intent",
                       json={"paymentGateway": "razorpay", "shippingAddressId": make_address(user).id},
                       headers=headers).json()["order"]["id"]


def test_razorpay_captured_settles_order(db, client, pending_razorpay_order):
    body = _razorpay_event(pending_razorpay_order)
    signature = hmac_hex(settings.RAZORPAY_WEBHOOK_SECRET, body)

    resp = client.post("/api/webhooks/razorpay", content=body, headers={"x-razorpay-signature": signature})

    assert resp.status_code == 200
    db.expire_all()
    order = db.get(Order, pending_razorpay_order)
    assert order.status == "PAID"
    assert order.payment_ref == "pay_wh_1"


def test_razorpay_bad_signature_rejected(db, client, pending_razorpay_order):
    body = _razorpay_event(pending_razorpay_order)

    resp = client.post("/api/webhooks/razorpay", content=body, headers={"x-razorpay-signature": "deadbeef"})

    assert resp.status_code == 400
    db.expire_all()
    assert db.get(Order, pending_razorpay_order).status == "AWAITING_PAYMENT"


def test_razorpay_reference_mismatch_ignored(db, client, pending_razorpay_order):
    body = _razorpay_event(pending_razorpay_order).replace(b"order_rzp_wh", b"order_rzp_other")
    signature = hmac_hex(settings.RAZORPAY_WEBHOOK_SECRET, body)

    assert client.post("/api/webhooks/razorpay", content=body,
                       headers={"x-razorpay-signature": signature}).status_code == 200
    db.expire_all()
    assert db.get(Order, pending_razorpay_order).status == "AWAITING_PAYMENT"


def test_unconfigured_webhook_is_503(monkeypatch, client, db):
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", "")
    resp = client.post("/api/webhooks/stripe", content=b"{}", headers={"stripe-signature": "t=1,v1=x"})
    assert resp.status_code == 503


def test_capture_after_failed_attempt_flags_refund(db, client, pending_razorpay_order):
    failed = _razorpay_event(pending_razorpay_order, event="payment.failed")
    client.post("/api/webhooks/razorpay", content=failed,
                headers={"x-razorpay-signature": hmac_hex(settings.RAZORPAY_WEBHOOK_SECRET, failed)})

    captured = _razorpay_event(pending_razorpay_order)
    resp = client.post("/api/webhooks/razorpay", content=captured,
                       headers={"x-razorpay-signature": hmac_hex(settings.RAZORPAY_WEBHOOK_SECRET, captured)})

    assert resp.status_code == 200
    db.expire_all()
    order = db.get(Order, pending_razorpay_order)
    assert order.status == "CANCELLED"
    assert order.refund_required is True
    assert order.payment_ref == "pay_wh_1"
    assert order.payment_error == "captured_after_cancel"
    logs = db.query(WebhookLog).order_by(WebhookLog.id).all()
    assert [(log.event_type, log.success) for log in logs] == [
        ("payment.failed", True), ("payment.captured", False),
    ]
    assert logs[1].message.endswith("captured_after_cancel")


def test_missing_signature_headers_rejected(db, client, pending_order):
    order_id, product = pending_order
    body = _stripe_event("payment_intent.succeeded", order_id)

    assert client.post("/api/webhooks/stripe", content=body).status_code == 400
    assert client.post("/api/webhooks/razorpay", content=_razorpay_event(order_id)).status_code == 400
    db.expire_all()
    assert db.get(Order, order_id).status == "AWAITING_PAYMENT"
    assert db.query(WebhookLog).count() == 0


def test_stripe_signature_with_wrong_secret_rejected(client, pending_order):
    order_id, _ = pending_order
    body = _stripe_event("payment_intent.succeeded", order_id)

    resp = client.post("/api/webhooks/stripe", content=body,
                       headers=_stripe_headers(body, secret="whsec_someone_else"))
    assert resp.status_code == 400
