"""
Payment Service
=================
Checkout orchestration (order snapshot + gateway payment object), client-side
confirmation, and webhook processing for Stripe and Razorpay.
All three confirmation paths end in order_service.settle_payment().
"""

import logging
from typing import Any, Dict, Tuple

from sqlalchemy.orm import Session

from config import settings
from common.exceptions import (
    ValidationError, PaymentError, ServiceUnavailableError, GatewayError,
)
from common.helpers import safe_int, to_minor_units
from modules.cart.service import cart_service
from modules.customer.service import address_service
from modules.order.models import Order, OrderStatus
from modules.order.service import order_service, SettlementOutcome
from modules.user.models import User

# Import gateway modules to trigger register_gateway() calls
from modules.payment.gateways import get_gateway, BaseGateway, GatewayPaymentRequest, WebhookEvent
import modules.payment.gateways.stripe     # noqa: F401
import modules.payment.gateways.razorpay   # noqa: F401

logger = logging.getLogger("saakie.payment")

SUPPORTED_GATEWAYS = ("stripe", "razorpay")

_PAST_PAYMENT = {
    OrderStatus.PAID.value, OrderStatus.FULFILLING.value,
    OrderStatus.SHIPPED.value, OrderStatus.DELIVERED.value,
}
_HANDLED_SETTLEMENTS = (SettlementOutcome.SETTLED, SettlementOutcome.ALREADY_SETTLED)


class PaymentService:

    # ==========================================
    # 🔧 Gateway Selection
    # ==========================================

    def resolve_gateway(self, name: str) -> BaseGateway:
        """Known gateway name (400) that is fully configured (503)."""
        if name not in SUPPORTED_GATEWAYS:
            raise ValidationError("Invalid payment gateway")
        gateway = get_gateway(name)
        if not gateway or not gateway.is_enabled():
            raise ServiceUnavailableError(f"{name.capitalize()} payments are not configured")
        return gateway

    # ==========================================
    # 🧾 Create Payment Intent
    # ==========================================

    def create_payment_intent(self, db: Session, user: User, data: Dict[str, Any]) -> Dict[str, Any]:
        gateway_name = (data.get("paymentGateway") or "stripe").lower()
        if gateway_name not in SUPPORTED_GATEWAYS:
            raise ValidationError("Invalid payment gateway")
        shipping_address_id = safe_int(data.get("shippingAddressId"))
        if shipping_address_id is None:
            raise ValidationError("Shipping address is required")

        # Before any write
        gateway = self.resolve_gateway(gateway_name)

        validation = cart_service.validate_cart(db, user.id)
        if not validation.is_valid:
            raise ValidationError("Cart validation failed", details=validation.errors)
        cart_service.refresh_prices(db, user.id)

        shipping = address_service.get_owned(db, user.id, shipping_address_id)
        if not shipping:
            raise ValidationError("Invalid shipping address")
        billing = shipping
        if data.get("billingAddressId") is not None:
            billing = address_service.get_owned(db, user.id, safe_int(data.get("billingAddressId")))
            if not billing:
                raise ValidationError("Invalid billing address")

        order = order_service.checkout(db, user.id, gateway_name, shipping, billing)

        result = gateway.create_payment(GatewayPaymentRequest(
            amount_minor=to_minor_units(order.total),
            currency=settings.PAYMENT_CURRENCY,
            order_ref=order.order_number,
            metadata={"orderId": str(order.id), "orderNumber": order.order_number, "userId": str(user.id)},
            description=f"Saakie order {order.order_number}",
        ))
        if not result.success:
            db.rollback()
            logger.error(f"{gateway.label} payment creation failed for user #{user.id}: {result.error_message}")
            raise GatewayError("Failed to create payment", details=result.error_message)

        order_service.attach_gateway_ref(db, order, result.gateway_ref, actor=f"user:{user.id}")
        logger.info(f"Order {order.order_number} awaiting {gateway_name} payment ({result.gateway_ref})")

        return {
            **result.client_params,
            "gateway": gateway_name,
            "order": order.to_dict(),
        }

    # ==========================================
    # ✅ Client-side Confirmation
    # ==========================================

    def confirm_payment(self, db: Session, user: User, data: Dict[str, Any]) -> Tuple[SettlementOutcome, Order]:
        """
        Verify a payment reported by the client and settle the order.
        The caller commits, then maps STOCK_CONFLICT and CAPTURED_AFTER_CANCEL to 409.
        """
        gateway_name = (data.get("gateway") or data.get("paymentGateway") or "stripe").lower()
        if gateway_name not in SUPPORTED_GATEWAYS:
            raise ValidationError("Invalid payment gateway")
        if data.get("orderId") is None:
            raise ValidationError("orderId is required")

        order = order_service.get_owned(db, user.id, data.get("orderId"))
        if order.status in _PAST_PAYMENT:
            raise PaymentError("Order already paid")
        if order.payment_method != gateway_name:
            raise PaymentError("Payment gateway does not match order")

        gateway = self.resolve_gateway(gateway_name)
        verify_params = dict(data)
        verify_params["orderId"] = order.id
        verify_params["gatewayRef"] = order.gateway_ref
        verified = gateway.verify_payment(verify_params)
        if not verified.success:
            logger.warning(f"Payment verification failed for order {order.order_number}: {verified.error_message}")
            raise PaymentError(verified.error_message or "Payment verification failed")

        outcome = order_service.settle_payment(db, order.id, verified.ref_number, actor=f"user:{user.id}")
        if outcome == SettlementOutcome.ALREADY_SETTLED:
            raise PaymentError("Order already paid")
        if outcome == SettlementOutcome.CAPTURED_AFTER_CANCEL:
            logger.error(f"Order {order.order_number} confirmed after cancellation; refund required")
        if outcome == SettlementOutcome.NOT_PAYABLE:
            raise PaymentError("Order is not awaiting payment")

        db.refresh(order)
        return outcome, order

    # ==========================================
    # 🔔 Webhooks
    # ==========================================

    def verify_webhook(self, gateway_name: str, body: bytes, headers) -> WebhookEvent:
        """503 when unconfigured; WebhookSignatureError (400) before any DB access."""
        gateway = get_gateway(gateway_name)
        if not gateway or not gateway.is_enabled():
            raise ServiceUnavailableError(f"{gateway_name.capitalize()} webhooks are not configured")
        return gateway.parse_webhook(body, headers)

    def process_webhook(self, db: Session, gateway_name: str, event: WebhookEvent) -> Tuple[str, bool]:
        """
        Apply a verified event. Returns (outcome message, success); replays are
        no-ops and count as handled. Anything needing an admin's attention
        (unknown order, stock conflict, capture on a cancelled order) is a failure.
        """
        if not event.action:
            return f"ignored: {event.event_type}", False

        order = None
        if event.order_id:
            order = db.query(Order).filter(Order.id == event.order_id).first()
        if not order:
            order = order_service.find_by_gateway_ref(db, event.gateway_ref)
        if not order:
            logger.warning(f"{gateway_name} {event.event_type}: no matching order ({event.gateway_ref})")
            return "ignored: order not found", False
        if order.gateway_ref and event.gateway_ref and order.gateway_ref != event.gateway_ref:
            logger.warning(f"{gateway_name} {event.event_type}: reference mismatch for order #{order.id}")
            return "ignored: reference mismatch", False

        actor = f"webhook:{gateway_name}"
        order_id = order.id
        if event.action == "settle":
            outcome = order_service.settle_payment(db, order_id, event.payment_ref or event.gateway_ref, actor=actor)
            return f"order #{order_id}: {outcome.value}", outcome in _HANDLED_SETTLEMENTS
        if event.action in ("fail", "cancel"):
            changed = order_service.fail_payment(
                db, order_id, reason=event.reason or "", cancelled=(event.action == "cancel"), actor=actor,
            )
            return f"order #{order_id}: {'cancelled' if changed else 'unchanged'}", True
        return f"ignored: {event.event_type}", False


# Singleton
payment_service = PaymentService()
