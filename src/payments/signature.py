"""HMAC-SHA256 signatures for gateway payment confirmations.

The gateway signs ``"<gateway_order_id>|<gateway_payment_id>"`` with the
secret shared with the storefront and sends the hex digest along with the
confirmation.
"""

import hashlib
import hmac


def sign(gateway_order_id: str, gateway_payment_id: str, secret: str) -> str:
    message = f"{gateway_order_id}|{gateway_payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def verify(gateway_order_id: str, gateway_payment_id: str, signature: str, secret: str) -> bool:
    """Constant-time comparison of ``signature`` against the expected digest."""
    if not signature:
        return False
    expected = sign(gateway_order_id, gateway_payment_id, secret)
    return hmac.compare_digest(expected, signature.strip().lower())
