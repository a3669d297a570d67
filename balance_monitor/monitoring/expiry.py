"""
Expiry reminder job.

Checks two deadlines once a day around noon local time:
- the ``exp`` claim of the billing JWT
- the subscription plan expiry from the latest usage record

A reminder is pushed when the deadline is one whole day away and the local
hour is within the reminder window.
"""

import logging
import math
from datetime import UTC, datetime
from typing import Any

import jwt

from ..config.schemas import MonitorConfig
from ..errors import NotificationError
from ..notifications import BarkNotifier
from ..observability import get_observability
from ..storage import LogType, UsageRepository
from ..timeutils import now_utc, to_local

logger = logging.getLogger(__name__)

REMINDER_HOURS = range(11, 14)  # 11:00-13:59 local


def days_until(expiration: datetime, now: datetime) -> int:
    """Whole days left, rounded down."""
    return math.floor((expiration - now).total_seconds() / 86400)


def should_remind(expiration: datetime, local_now: datetime) -> bool:
    return days_until(expiration, local_now) == 1 and local_now.hour in REMINDER_HOURS


def jwt_expiration(token: str) -> datetime | None:
    """
    Read the ``exp`` claim without verifying the signature.

    Returns None for tokens that cannot be decoded or carry no expiry.
    """
    try:
        claims = jwt.decode(token, options={"verify_signature": False, "verify_exp": False})
    except jwt.PyJWTError as e:
        logger.warning(f"Could not decode billing JWT: {e}")
        return None

    exp = claims.get("exp")
    if exp is None:
        return None
    return datetime.fromtimestamp(float(exp), UTC)


class ExpiryNotifier:
    """Pushes "expires tomorrow" reminders."""

    def __init__(
        self,
        repository: UsageRepository,
        notifier: BarkNotifier | None,
        config: MonitorConfig,
        label: str = "Balance",
    ):
        self.repository = repository
        self.notifier = notifier
        self.config = config
        self.label = label

    async def check(self, now: datetime | None = None) -> dict[str, Any]:
        """
        Run both expiry checks.

        Each check fails independently; a failed push is logged and
        reported in the result instead of raised.
        """
        obs = get_observability()
        local_now = to_local(now or now_utc(), self.config.tz)
        notifications: list[dict[str, Any]] = []

        with obs.trace("expiry_check"):
            jwt_sent = await self._check_token(local_now, notifications)
            subscription_sent = await self._check_subscription(local_now, notifications)

        if notifications:
            message = f"Sent {sum(1 for n in notifications if n['delivered'])} notification(s)"
        else:
            message = "No notification needed"

        return {
            "message": message,
            "notifications": notifications,
            "jwt_notification_sent": jwt_sent,
            "subscription_notification_sent": subscription_sent,
            "checked_at": local_now.strftime("%Y-%m-%d %H:%M:%S"),
        }

    async def _check_token(self, local_now: datetime, notifications: list[dict[str, Any]]) -> bool:
        token = self.config.billing.jwt_token
        if not token:
            return False

        expiration = jwt_expiration(token)
        if expiration is None or not should_remind(expiration, local_now):
            return False

        local_exp = to_local(expiration, self.config.tz)
        title = f"{self.label} token expiring"
        body = (
            f"Your {self.label} JWT token expires tomorrow at {local_exp:%H:%M}. "
            "Renew it to avoid service interruption."
        )
        return await self._push("jwt_token", title, body, local_exp, notifications)

    async def _check_subscription(self, local_now: datetime, notifications: list[dict[str, Any]]) -> bool:
        latest = await self.repository.latest_record()
        if latest is None or latest.plan_expires_at_utc is None:
            return False

        expiration = latest.plan_expires_at_utc
        if not should_remind(expiration, local_now):
            return False

        local_exp = to_local(expiration, self.config.tz)
        plan = (latest.plan_type or "pro").upper()
        title = f"{self.label} subscription expiring"
        body = (
            f"Your {self.label} {plan} subscription expires tomorrow at {local_exp:%H:%M}. "
            "Renew it to avoid service interruption."
        )
        return await self._push("subscription", title, body, local_exp, notifications, plan_type=latest.plan_type)

    async def _push(
        self,
        kind: str,
        title: str,
        body: str,
        local_exp: datetime,
        notifications: list[dict[str, Any]],
        **extra: Any,
    ) -> bool:
        entry: dict[str, Any] = {
            "type": kind,
            "expiration_time": local_exp.strftime("%Y-%m-%d %H:%M:%S"),
            **extra,
        }

        if self.notifier is None:
            entry.update(delivered=False, error="notifier not configured")
            notifications.append(entry)
            return False

        try:
            delivered = await self.notifier.send(title, body)
        except NotificationError as e:
            logger.error(f"{kind} expiry reminder failed: {e}")
            entry.update(delivered=False, error=str(e))
            notifications.append(entry)
            return False

        entry["delivered"] = delivered
        notifications.append(entry)
        if delivered:
            get_observability().increment("expiry.reminder", tags={"type": kind})
            await self.repository.add_system_log(LogType.NOTIFICATION, title, entry)
        return delivered
