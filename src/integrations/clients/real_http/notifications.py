"""
Real notifications HTTP client.

Used when NOTIFICATIONS_API_URL is configured. Posts each message to the
email delivery service; a non-2xx response raises httpx.HTTPStatusError.
"""

from __future__ import annotations

import os
from typing import Any, Dict, Optional

import httpx

from src.integrations.contracts.interfaces import NotificationDispatcher, NotificationMessage


class RealNotificationDispatcher(NotificationDispatcher):
    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        send_path: Optional[str] = None,
        sender: Optional[str] = None,
        timeout_seconds: float = 20.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or os.getenv("NOTIFICATIONS_API_URL", "")).rstrip("/")
        self.api_key = api_key or os.getenv("NOTIFICATIONS_API_KEY", "")
        self.send_path = send_path or os.getenv("NOTIFICATIONS_SEND_PATH", "/emails")
        self.sender = sender or os.getenv("NOTIFICATIONS_SENDER", "contracts@speakabout.ai")
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    def dispatch(self, message: NotificationMessage) -> None:
        if not self.base_url:
            raise ValueError("NOTIFICATIONS_API_URL is not configured.")

        headers: Dict[str, str] = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        payload: Dict[str, Any] = {
            "from": self.sender,
            "to": [message.recipient_email],
            "subject": message.subject,
            "html": message.html,
            "text": message.text,
            "tags": {
                "event": message.event.value,
                "contract_id": message.contract_id,
                "contract_number": message.contract_number,
            },
        }

        url = f"{self.base_url}{self.send_path}"
        with httpx.Client(timeout=self.timeout_seconds, transport=self.transport) as client:
            response = client.post(url, json=payload, headers=headers)
            response.raise_for_status()
