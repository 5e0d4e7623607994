import hmac
import hashlib
import logging
from decimal import Decimal
from typing import Optional, Union

logger = logging.getLogger("airrands")

SIGNATURE_HEADER = "x-paystack-signature"


def compute_signature(body: bytes, secret: str) -> str:
    """HMAC-SHA512 hex digest Paystack sends in the signature header."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha512).hexdigest()


def verify_signature(body: bytes, signature: Optional[str], secret: str) -> bool:
    """
    Check a webhook body against its signature header in constant time.
    Never raises; anything malformed is simply rejected.
    """
    if not signature or not secret:
        return False
    try:
        expected = compute_signature(body, secret)
        return hmac.compare_digest(expected, signature.strip().lower())
    except (TypeError, ValueError, UnicodeError) as e:
        logger.warning(f"Signature check failed on malformed input: {e}")
        return False


def kobo_to_naira(amount_kobo: int) -> Union[int, float]:
    """
    Display mirror of a kobo amount for the dashboard's `amount` field.
    Whole naira stay integers. `amountMinor` remains the value to compute with.
    """
    value = Decimal(int(amount_kobo)) / 100
    if value == value.to_integral_value():
        return int(value)
    return float(value.quantize(Decimal("0.01")))


def format_naira(amount_kobo: int) -> str:
    return f"₦{Decimal(int(amount_kobo)) / 100:,.2f}".replace(".00", "")
