# services/push_relay.py
import httpx
import logging
from typing import Any, Dict, Optional

from app.core.config import settings
from app.core.errors import DeviceNotRegistered, UpstreamError

logger = logging.getLogger("airrands.push")


class ExpoPushClient:
    """
    Sends one message through the Expo push relay.
    Raises DeviceNotRegistered when the token is permanently dead,
    UpstreamError for anything else that went wrong.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        access_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url or settings.EXPO_PUSH_URL
        self.access_token = access_token or settings.EXPO_ACCESS_TOKEN
        self.transport = transport

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def send(
        self,
        token: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
        channel_id: str = "default",
    ) -> dict:
        message = {
            "to": token,
            "title": title,
            "body": body,
            "data": data or {},
            "sound": "default",
            "priority": "high",
            "channelId": channel_id,
        }

        try:
            async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS, transport=self.transport) as client:
                response = await client.post(self.url, json=message, headers=self._headers())
        except httpx.HTTPError as e:
            raise UpstreamError(f"Push relay unreachable: {e}")

        try:
            result = response.json()
        except ValueError:
            raise UpstreamError(f"Push relay returned non-JSON ({response.status_code})")

        # Request-level errors: {"errors": [{"code": ..., "message": ...}]}
        errors = result.get("errors") or []
        if errors:
            if any(err.get("code") == "DeviceNotRegistered" for err in errors):
                raise DeviceNotRegistered()
            raise UpstreamError(f"Push relay errors: {errors}")

        # Ticket-level errors: {"data": {"status": "error", "details": {"error": ...}}}
        ticket = result.get("data") or {}
        if isinstance(ticket, list):
            ticket = ticket[0] if ticket else {}
        if ticket.get("status") == "error":
            if (ticket.get("details") or {}).get("error") == "DeviceNotRegistered":
                raise DeviceNotRegistered()
            raise UpstreamError(f"Push ticket error: {ticket.get('message')}")

        if response.status_code >= 400:
            raise UpstreamError(f"Push relay HTTP {response.status_code}")

        return ticket
