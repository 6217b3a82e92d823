"""Multi-channel dispatch of triggered price alerts.

Each channel runs inside its own failure boundary. Outcomes are collected for
logging and metrics only; one channel's result never decides whether another
channel is attempted.
"""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from src.db.subscriptions import PushSubscriptionStore
from src.detect.alert_matcher import AlertView
from src.notify.emailer import EmailNotifier
from src.notify.push import PushNotifier
from src import metrics

logger = logging.getLogger(__name__)


class Channel(str, Enum):
    """Notification channels."""

    EMAIL = "email"
    PUSH = "push"


class DeliveryStatus(str, Enum):
    """Result of one channel attempt."""

    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"  # Not attempted, e.g. no subscription on file


@dataclass
class ChannelOutcome:
    channel: Channel
    status: DeliveryStatus
    detail: Optional[str] = None


@dataclass
class DispatchOutcome:
    """Per-channel outcomes for one alert."""

    alert_id: int
    email: ChannelOutcome
    push: ChannelOutcome

    @property
    def any_sent(self) -> bool:
        return DeliveryStatus.SENT in (self.email.status, self.push.status)


class NotificationDispatcher:
    """
    Sends email and push for a triggered alert.

    Transport clients are passed in, built once at startup, so tests can hand
    in doubles.
    """

    def __init__(
        self,
        email_notifier: EmailNotifier,
        push_notifier: PushNotifier,
        subscriptions: PushSubscriptionStore,
    ):
        self.email_notifier = email_notifier
        self.push_notifier = push_notifier
        self.subscriptions = subscriptions

    async def notify(self, alert: AlertView, current_price: Decimal) -> DispatchOutcome:
        """
        Attempt every channel for one alert. Never raises.

        Args:
            alert: Triggered alert
            current_price: Price that triggered it

        Returns:
            DispatchOutcome with one ChannelOutcome per channel
        """
        email, push = await asyncio.gather(
            self._send_email(alert, current_price),
            self._send_push(alert, current_price),
        )

        outcome = DispatchOutcome(alert_id=alert.alert_id, email=email, push=push)
        for result in (email, push):
            metrics.record_notification(result.channel.value, result.status.value)

        logger.info(
            f"Alert {alert.alert_id} dispatched: "
            f"email={email.status.value} push={push.status.value}"
        )
        return outcome

    async def _send_email(self, alert: AlertView, current_price: Decimal) -> ChannelOutcome:
        try:
            await self.email_notifier.send_price_alert(alert, current_price)
        except Exception as e:
            logger.error(f"Failed to send email to {alert.email} for alert {alert.alert_id}: {e}")
            return ChannelOutcome(Channel.EMAIL, DeliveryStatus.FAILED, str(e))
        return ChannelOutcome(Channel.EMAIL, DeliveryStatus.SENT)

    async def _send_push(self, alert: AlertView, current_price: Decimal) -> ChannelOutcome:
        try:
            subscription = await self.subscriptions.get(alert.user_id)
            if not subscription:
                return ChannelOutcome(Channel.PUSH, DeliveryStatus.SKIPPED, "no subscription")

            if not self.push_notifier.configured:
                logger.debug("Push skipped: VAPID keys not configured")
                return ChannelOutcome(Channel.PUSH, DeliveryStatus.SKIPPED, "push not configured")

            await self.push_notifier.send_price_alert(subscription, alert, current_price)
        except Exception as e:
            logger.error(
                f"Push notification failed for user {alert.user_id} "
                f"(alert {alert.alert_id}): {e}"
            )
            return ChannelOutcome(Channel.PUSH, DeliveryStatus.FAILED, str(e))
        return ChannelOutcome(Channel.PUSH, DeliveryStatus.SENT)
