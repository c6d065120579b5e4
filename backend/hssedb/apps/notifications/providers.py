from __future__ import annotations

import logging
import os
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


class NotificationProvider:
    def send(
        self,
        *,
        channel: str,
        template_key: str,
        audience: str,
        recipient: Optional[str],
        subject: str,
        body: str,
        context: dict,
        correlation_id: Optional[str],
    ) -> None:
        raise NotImplementedError


class NoopProvider(NotificationProvider):
    def send(
        self,
        *,
        channel: str,
        template_key: str,
        audience: str,
        recipient: Optional[str],
        subject: str,
        body: str,
        context: dict,
        correlation_id: Optional[str],
    ) -> None:
        return None


class LoggingProvider(NotificationProvider):
    """Writes rendered notifications to the application log; for local runs."""

    def send(
        self,
        *,
        channel: str,
        template_key: str,
        audience: str,
        recipient: Optional[str],
        subject: str,
        body: str,
        context: dict,
        correlation_id: Optional[str],
    ) -> None:
        logger.info(
            "Notification %s to %s: %s",
            channel,
            recipient or audience,
            subject,
            extra={"template_key": template_key, "correlation_id": correlation_id},
        )


def get_notification_provider() -> Tuple[NotificationProvider, bool]:
    provider_name = (os.getenv("NOTIFICATIONS_PROVIDER") or "").strip().lower()
    if not provider_name or provider_name in {"none", "noop", "disabled"}:
        return NoopProvider(), False
    if provider_name == "log":
        return LoggingProvider(), True
    raise ValueError(f"Unsupported notification provider: {provider_name}")
