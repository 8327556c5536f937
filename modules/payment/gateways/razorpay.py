"""
Razorpay Gateway
=================
REST/JSON over httpx with basic auth for orders and payments; checkout and
webhook signatures are checked with the razorpay SDK utility.
"""

import json
import httpx
import razorpay
import logging
from typing import Dict, Any

from razorpay.errors import SignatureVerificationError

from config import settings
from common.exceptions import WebhookSignatureError
from common.helpers import safe_int
from modules.payment.gateways import (
    BaseGateway, GatewayPaymentRequest, GatewayCreateResult,
    GatewayVerifyResult, WebhookEvent, register_gateway,
)

logger = logging.getLogger("saakie.gateway.razorpay")

ORDERS_PATH = "/v1/orders"
PAYMENTS_PATH = "/v1/payments"

_EVENT_ACTIONS = {
    "payment.captured": "settle",
    "order.paid": "settle",
    "payment.failed": "fail",
}
_SETTLED_PAYMENT_STATES = ("captured", "authorized")


def _error_message(resp: httpx.Response) -> str:
    try:
        return resp.json().get("error", {}).get("description") or f"HTTP {resp.status_code}"
    except ValueError:
        return f"HTTP {resp.status_code}"


def _entity(payload: Dict[str, Any], kind: str) -> Dict[str, Any]:
    return ((payload.get(kind) or {}).get("entity")) or {}


class RazorpayGateway(BaseGateway):
    name = "razorpay"
    label = "Razorpay"

    def is_enabled(self) -> bool:
        return bool(settings.RAZORPAY_KEY_ID and settings.RAZORPAY_KEY_SECRET and settings.RAZORPAY_WEBHOOK_SECRET)

    def _url(self, path: str) -> str:
        return settings.RAZORPAY_API_BASE.rstrip("/") + path

    def _auth(self):
        return (settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET)

    def create_payment(self, req: GatewayPaymentRequest) -> GatewayCreateResult:
        try:
            resp = httpx.post(self._url(ORDERS_PATH), json={
                "amount": req.amount_minor,
                "currency": req.currency.upper(),
                "receipt": req.order_ref,
                "notes": {k: str(v) for k, v in req.metadata.items()},
            }, auth=self._auth(), timeout=settings.GATEWAY_TIMEOUT_SECONDS)
        except httpx.TimeoutException:
            return GatewayCreateResult(success=False, error_message="Razorpay did not respond")
        except httpx.HTTPError as e:
            logger.error(f"Razorpay create failed [{req.order_ref}]: {e}")
            return GatewayCreateResult(success=False, error_message="Could not reach Razorpay")

        if resp.status_code >= 400:
            msg = _error_message(resp)
            logger.error(f"Razorpay create rejected [{req.order_ref}]: {msg}")
            return GatewayCreateResult(success=False, error_message=msg)

        data = resp.json()
        logger.info(f"Razorpay create [{req.order_ref}]: order {data.get('id')}")
        return GatewayCreateResult(
            success=True,
            gateway_ref=data["id"],
            client_params={
                "razorpayOrderId": data["id"],
                "razorpayKeyId": settings.RAZORPAY_KEY_ID,
                "amount": req.amount_minor,
                "currency": req.currency.upper(),
            },
        )

    def _client(self) -> razorpay.Client:
        return razorpay.Client(auth=self._auth())

    def verify_payment(self, params: Dict[str, Any]) -> GatewayVerifyResult:
        """params: razorpayOrderId, razorpayPaymentId, razorpaySignature, gatewayRef."""
        order_id = params.get("razorpayOrderId") or ""
        payment_id = params.get("razorpayPaymentId") or ""
        signature = params.get("razorpaySignature") or ""
        if not (order_id and payment_id and signature):
            return GatewayVerifyResult(success=False, error_message="Missing Razorpay payment details")
        if params.get("gatewayRef") and order_id != params["gatewayRef"]:
            return GatewayVerifyResult(success=False, error_message="Payment does not match order")

        try:
            self._client().utility.verify_payment_signature({
                "razorpay_order_id": order_id,
                "razorpay_payment_id": payment_id,
                "razorpay_signature": signature,
            })
        except SignatureVerificationError:
            logger.warning(f"Razorpay signature mismatch for payment {payment_id}")
            return GatewayVerifyResult(success=False, error_message="Invalid payment signature")

        try:
            resp = httpx.get(
                self._url(f"{PAYMENTS_PATH}/{payment_id}"),
                auth=self._auth(),
                timeout=settings.GATEWAY_TIMEOUT_SECONDS,
            )
        except httpx.HTTPError as e:
            logger.error(f"Razorpay verify failed [{payment_id}]: {e}")
            return GatewayVerifyResult(success=False, error_message="Could not reach Razorpay")

        if resp.status_code >= 400:
            return GatewayVerifyResult(success=False, error_message=_error_message(resp))

        payment = resp.json()
        logger.info(f"Razorpay verify [{payment_id}]: status={payment.get('status')}")
        if payment.get("status") not in _SETTLED_PAYMENT_STATES:
            return GatewayVerifyResult(success=False, error_message="Payment not completed")
        if payment.get("order_id") and payment.get("order_id") != order_id:
            return GatewayVerifyResult(success=False, error_message="Payment does not match order")
        return GatewayVerifyResult(success=True, ref_number=payment_id)

    def parse_webhook(self, body: bytes, headers) -> WebhookEvent:
        secret = settings.RAZORPAY_WEBHOOK_SECRET
        signature = headers.get("x-razorpay-signature")
        if not secret or not signature:
            raise WebhookSignatureError()
        try:
            self._client().utility.verify_webhook_signature(body.decode("utf-8"), signature, secret)
        except (SignatureVerificationError, UnicodeDecodeError):
            raise WebhookSignatureError()

        try:
            event = json.loads(body)
        except ValueError:
            raise WebhookSignatureError("Invalid payload")

        event_type = event.get("event", "")
        payload = event.get("payload") or {}
        payment = _entity(payload, "payment")
        order = _entity(payload, "order")
        notes = order.get("notes") or payment.get("notes") or {}
        if isinstance(notes, list):
            notes = {}

        return WebhookEvent(
            event_type=event_type,
            action=_EVENT_ACTIONS.get(event_type),
            order_id=safe_int(notes.get("orderId")),
            gateway_ref=order.get("id") or payment.get("order_id"),
            payment_ref=payment.get("id"),
            reason=payment.get("error_description"),
            raw=event,
        )


register_gateway(RazorpayGateway())
