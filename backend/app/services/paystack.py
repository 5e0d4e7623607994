import httpx
import logging
import re
from typing import Optional
from urllib.parse import quote

from app.core.config import settings
from app.core.errors import InvalidArgument, UpstreamError

logger = logging.getLogger("airrands.paystack")

# Paystack references are opaque tokens; nothing here may reshape the request path
REFERENCE_PATTERN = re.compile(r"[A-Za-z0-9_=-][A-Za-z0-9._=-]{0,99}")


def validate_reference(reference: Optional[str]) -> str:
    if not reference or not REFERENCE_PATTERN.fullmatch(reference) or ".." in reference:
        raise InvalidArgument("Invalid transaction reference")
    return reference


class PaystackClient:
    """Thin async wrapper over the Paystack REST API."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key or settings.PAYSTACK_SECRET_KEY
        self.base_url = (base_url or settings.PAYSTACK_BASE_URL).rstrip("/")
        self.transport = transport

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=settings.HTTP_TIMEOUT_SECONDS,
            transport=self.transport,
        )

    async def verify_transaction(self, reference: str) -> dict:
        """
        GET /transaction/verify/{reference}. Returns the `data` object.
        Any transport error or non-2xx answer becomes UpstreamError.
        """
        path = f"/transaction/verify/{quote(validate_reference(reference), safe='')}"
        try:
            async with self._client() as client:
                response = await client.get(f"{self.base_url}{path}", headers=self._headers())
        except httpx.HTTPError as e:
            logger.error(f"Paystack verify request failed for {reference}: {e}")
            raise UpstreamError("Paystack is unreachable")

        try:
            result = response.json()
        except ValueError:
            result = {}

        if response.status_code >= 400 or not result.get("status", True):
            message = result.get("message") or "Unknown error"
            logger.error(f"Paystack API error for {reference}: {response.status_code} {message}")
            raise UpstreamError(f"Paystack API error: {message}")

        return result.get("data") or {}
