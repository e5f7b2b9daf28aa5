"""
Mock notification dispatcher.

Purpose:
- Stands in for the email delivery service during development/testing
- Does NOT make any network calls
- Keeps every dispatched message in memory so flows can be inspected

Failure scenarios:
- Pass `fail_for={"someone@example.com"}` to make delivery raise for those recipients.

Swap:
Replace with clients/real_http/notifications.py when NOTIFICATIONS_API_URL is set.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from src.integrations.contracts.interfaces import NotificationDispatcher, NotificationEvent, NotificationMessage

logger = logging.getLogger(__name__)


class NotificationDeliveryError(RuntimeError):
    pass


class MockNotificationDispatcher(NotificationDispatcher):
    def __init__(self, fail_for: Optional[Iterable[str]] = None) -> None:
        self.sent: List[NotificationMessage] = []
        self.fail_for = {e.lower() for e in (fail_for or [])}

    def dispatch(self, message: NotificationMessage) -> None:
        if message.recipient_email.lower() in self.fail_for:
            raise NotificationDeliveryError(f"Mock delivery failure for {message.recipient_email}")
        self.sent.append(message)
        logger.info(
            "[mock] %s email to %s for contract %s: %s",
            message.event.value,
            message.recipient_email,
            message.contract_number,
            message.subject,
        )

    def sent_to(self, email: str, event: Optional[NotificationEvent] = None) -> List[NotificationMessage]:
        return [
            m
            for m in self.sent
            if m.recipient_email.lower() == email.lower() and (event is None or m.event == event)
        ]
