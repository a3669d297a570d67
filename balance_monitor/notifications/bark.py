"""
Bark push notification sender.

Bark (https://github.com/Finb/Bark) accepts a JSON POST on the device
endpoint. A notifier without an endpoint is disabled and sends nothing.
"""

import logging
from typing import Any
from urllib.parse import urlparse

import httpx

from ..errors import NotificationError

logger = logging.getLogger(__name__)


class BarkNotifier:
    """Sends push notifications to a single Bark device."""

    def __init__(
        self,
        url: str | None,
        group: str = "balance-monitor",
        sound: str = "alarm",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if url:
            # Only http(s) targets are accepted
            scheme = urlparse(url).scheme
            if scheme not in ("http", "https"):
                raise ValueError(f"Invalid Bark URL scheme: {scheme}. Only http and https are allowed.")

        self.url = url
        self.group = group
        self.sound = sound
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self.sent_count = 0

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    async def send(
        self,
        title: str,
        body: str,
        *,
        group: str | None = None,
        url: str | None = None,
    ) -> bool:
        """
        Push one notification.

        Args:
            title: Notification title
            body: Notification body
            group: Override the notifier's group
            url: Link opened when the notification is tapped

        Returns:
            True when delivered, False when the notifier is disabled

        Raises:
            NotificationError: Transport failure or non-2xx response
        """
        if not self.url:
            logger.debug(f"Bark disabled, dropping notification: {title}")
            return False

        payload: dict[str, Any] = {
            "title": title,
            "body": body,
            "group": group or self.group,
            "sound": self.sound,
            "badge": 1,
        }
        if url:
            payload["url"] = url

        try:
            response = await self._client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            raise NotificationError(f"Failed to send Bark notification: {e}", details={"title": title}) from e

        if not response.is_success:
            raise NotificationError(
                f"Bark API responded with status {response.status_code}",
                details={"title": title, "status": response.status_code, "body": response.text[:200]},
            )

        self.sent_count += 1
        logger.info(f"Bark notification sent: {title}", extra={"title": title, "group": payload["group"]})
        return True

    async def close(self) -> None:
        await self._client.aclose()


async def notify_safely(notifier: BarkNotifier | None, title: str, body: str, **kwargs: Any) -> bool:
    """Send a notification from an error path; delivery failures are logged, never raised."""
    if notifier is None:
        return False
    try:
        return await notifier.send(title, body, **kwargs)
    except NotificationError as e:
        logger.error(f"Failed to send Bark notification: {e}", extra={"title": title})
        return False
