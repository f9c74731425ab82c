"""
Payment gateway seam.

The services only ever see PaymentGateway.charge(); which provider sits
behind it is chosen by settings.PAYMENT_GATEWAY_CLASS.
"""
import hashlib
import hmac
import logging
import uuid
from dataclasses import dataclass

from ..conf import gateway_class

logger = logging.getLogger(__name__)

CHARGE_SUCCEEDED = "succeeded"
CHARGE_PENDING = "pending"


@dataclass(frozen=True)
class GatewayCharge:
    transaction_id: str
    status: str  # CHARGE_SUCCEEDED or CHARGE_PENDING

    @property
    def succeeded(self):
        return self.status == CHARGE_SUCCEEDED


class PaymentGateway:
    """Interface. Implementations raise GatewayError on decline/failure."""

    def charge(self, payment, *, description="", payment_method_ref=""):
        raise NotImplementedError


class OfflineGateway(PaymentGateway):
    """Issues a reference and leaves the charge pending; the money is
    confirmed later by the provider's webhook or by an admin."""

    def charge(self, payment, *, description="", payment_method_ref=""):
        ref = f"off_{payment.pk}_{uuid.uuid4().hex[:16]}"
        logger.info("Offline charge %s for payment %s (%s)", ref, payment.pk, description)
        return GatewayCharge(transaction_id=ref, status=CHARGE_PENDING)


def get_gateway(gateway=None):
    return gateway if gateway is not None else gateway_class()()


def sign_payload(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    if not signature:
        return False
    return hmac.compare_digest(sign_payload(body, secret), signature)
