"""
Stripe Gateway
===============
REST (form-encoded) over httpx for PaymentIntents; webhook signatures
are checked with the stripe SDK.
"""

import json
import httpx
import stripe
import logging
from typing import Dict, Any

from config import settings
from common.exceptions import WebhookSignatureError
from common.helpers import safe_int
from modules.payment.gateways import (
    BaseGateway, GatewayPaymentRequest, GatewayCreateResult,
    GatewayVerifyResult, WebhookEvent, register_gateway,
)

logger = logging.getLogger("saakie.gateway.stripe")

PAYMENT_INTENTS_PATH = "/v1/payment_intents"

_EVENT_ACTIONS = {
    "payment_intent.succeeded": "settle",
    "payment_intent.payment_failed": "fail",
    "payment_intent.canceled": "cancel",
}


def _error_message(resp: httpx.Response) -> str:
    try:
        return resp.json().get("error", {}).get("message") or f"HTTP {resp.status_code}"
    except ValueError:
        return f"HTTP {resp.status_code}"


class StripeGateway(BaseGateway):
    name = "stripe"
    label = "Stripe"

    def is_enabled(self) -> bool:
        return bool(settings.STRIPE_SECRET_KEY and settings.STRIPE_WEBHOOK_SECRET)

    def _url(self, path: str) -> str:
        return settings.STRIPE_API_BASE.rstrip("/") + path

    def create_payment(self, req: GatewayPaymentRequest) -> GatewayCreateResult:
        form = {
            "amount": str(req.amount_minor),
            "currency": req.currency.lower(),
            "description": req.description or req.order_ref,
            "automatic_payment_methods[enabled]": "true",
        }
        for key, value in req.metadata.items():
            form[f"metadata[{key}]"] = str(value)

        try:
            resp = httpx.post(
                self._url(PAYMENT_INTENTS_PATH),
                data=form,
                auth=(settings.STRIPE_SECRET_KEY, ""),
                timeout=settings.GATEWAY_TIMEOUT_SECONDS,
            )
        except httpx.TimeoutException:
            return GatewayCreateResult(success=False, error_message="Stripe did not respond")
        except httpx.HTTPError as e:
            logger.error(f"Stripe create failed [{req.order_ref}]: {e}")
            return GatewayCreateResult(success=False, error_message="Could not reach Stripe")

        if resp.status_code >= 400:
            msg = _error_message(resp)
            logger.error(f"Stripe create rejected [{req.order_ref}]: {msg}")
            return GatewayCreateResult(success=False, error_message=msg)

        data = resp.json()
        logger.info(f"Stripe create [{req.order_ref}]: intent {data.get('id')}")
        return GatewayCreateResult(
            success=True,
            gateway_ref=data["id"],
            client_params={"clientSecret": data.get("client_secret"), "paymentIntentId": data["id"]},
        )

    def verify_payment(self, params: Dict[str, Any]) -> GatewayVerifyResult:
        """params: paymentIntentId, orderId, gatewayRef. Intent must be succeeded and belong to the order."""
        intent_id = params.get("paymentIntentId") or ""
        if not intent_id:
            return GatewayVerifyResult(success=False, error_message="paymentIntentId is required")
        if params.get("gatewayRef") and intent_id != params["gatewayRef"]:
            return GatewayVerifyResult(success=False, error_message="Payment does not match order")

        try:
            resp = httpx.get(
                self._url(f"{PAYMENT_INTENTS_PATH}/{intent_id}"),
                auth=(settings.STRIPE_SECRET_KEY, ""),
                timeout=settings.GATEWAY_TIMEOUT_SECONDS,
            )
        except httpx.HTTPError as e:
            logger.error(f"Stripe verify failed [{intent_id}]: {e}")
            return GatewayVerifyResult(success=False, error_message="Could not reach Stripe")

        if resp.status_code >= 400:
            return GatewayVerifyResult(success=False, error_message=_error_message(resp))

        intent = resp.json()
        logger.info(f"Stripe verify [{intent_id}]: status={intent.get('status')}")
        if intent.get("status") != "succeeded":
            return GatewayVerifyResult(success=False, error_message="Payment not completed")
        if str((intent.get("metadata") or {}).get("orderId")) != str(params.get("orderId")):
            return GatewayVerifyResult(success=False, error_message="Payment does not match order")
        return GatewayVerifyResult(success=True, ref_number=intent_id)

    def parse_webhook(self, body: bytes, headers) -> WebhookEvent:
        signature = headers.get("stripe-signature")
        if not signature:
            raise WebhookSignatureError()
        try:
            stripe.WebhookSignature.verify_header(
                body.decode("utf-8"), signature, settings.STRIPE_WEBHOOK_SECRET,
                tolerance=settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
            )
        except (stripe.SignatureVerificationError, UnicodeDecodeError):
            raise WebhookSignatureError()

        try:
            event = json.loads(body)
        except ValueError:
            raise WebhookSignatureError("Invalid payload")

        event_type = event.get("type", "")
        obj = (event.get("data") or {}).get("object") or {}
        metadata = obj.get("metadata") or {}
        error = obj.get("last_payment_error") or {}
        return WebhookEvent(
            event_type=event_type,
            action=_EVENT_ACTIONS.get(event_type),
            order_id=safe_int(metadata.get("orderId")),
            gateway_ref=obj.get("id"),
            payment_ref=obj.get("id"),
            reason=error.get("message") or obj.get("cancellation_reason"),
            raw=event,
        )


register_gateway(StripeGateway())
