"""
Payment Gateway Abstraction
=============================
Each gateway implements create_payment(), verify_payment() and
parse_webhook(). Registry pattern for gateway lookup by name.
"""

import logging
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field

logger = logging.getLogger("saakie.gateway")


@dataclass
class GatewayPaymentRequest:
    """Input for creating a payment."""
    amount_minor: int       # paise
    currency: str
    order_ref: str          # order_number (receipt)
    metadata: Dict[str, str] = field(default_factory=dict)
    description: str = ""


@dataclass
class GatewayCreateResult:
    """Result of create_payment()."""
    success: bool
    gateway_ref: Optional[str] = None           # payment intent id / gateway order id
    client_params: Dict[str, Any] = field(default_factory=dict)
    error_message: Optional[str] = None


@dataclass
class GatewayVerifyResult:
    """Result of verify_payment()."""
    success: bool
    ref_number: Optional[str] = None            # captured payment id
    error_message: Optional[str] = None


@dataclass
class WebhookEvent:
    """A verified webhook delivery, normalized across gateways."""
    event_type: str
    action: Optional[str] = None                # "settle" / "fail" / "cancel" / None (ignored)
    order_id: Optional[int] = None
    gateway_ref: Optional[str] = None
    payment_ref: Optional[str] = None
    reason: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


class BaseGateway:
    """Abstract gateway interface."""
    name: str = ""
    label: str = ""

    def is_enabled(self) -> bool:
        """True only when every credential the gateway needs is configured."""
        raise NotImplementedError

    def create_payment(self, req: GatewayPaymentRequest) -> GatewayCreateResult:
        raise NotImplementedError

    def verify_payment(self, params: Dict[str, Any]) -> GatewayVerifyResult:
        raise NotImplementedError

    def parse_webhook(self, body: bytes, headers: Dict[str, str]) -> WebhookEvent:
        """Verify the signature over the raw body, then normalize. Raises WebhookSignatureError."""
        raise NotImplementedError


# ── Registry ──

_GATEWAYS: Dict[str, BaseGateway] = {}


def register_gateway(gw: BaseGateway):
    _GATEWAYS[gw.name] = gw


def get_gateway(name: str) -> Optional[BaseGateway]:
    return _GATEWAYS.get(name)


def get_all_gateway_names() -> List[str]:
    return list(_GATEWAYS.keys())
