"""Web Push notifications signed with the service's VAPID key pair."""

import asyncio
import json
import logging
from decimal import Decimal

from pywebpush import WebPushException, webpush

from src.config import Settings
from src.detect.alert_matcher import AlertView

logger = logging.getLogger(__name__)

# Push services answer 404/410 for subscriptions the browser has dropped.
EXPIRED_STATUS_CODES = (404, 410)


def build_push_payload(
    alert: AlertView, current_price: Decimal, currency_symbol: str = "$"
) -> dict:
    """Payload consumed by the client service worker."""
    name = alert.product_name or "Your tracked product"
    return {
        "title": "Price Drop!",
        "body": f"{name} is now {currency_symbol}{current_price:.2f}!",
        "url": alert.product_url,
    }


class PushSubscriptionExpired(RuntimeError):
    """The push service reports the subscription as gone."""


class PushNotifier:
    """VAPID-authenticated Web Push sender. One instance per process."""

    def __init__(
        self,
        vapid_private_key: str = "",
        vapid_public_key: str = "",
        vapid_subject: str = "",
        timeout: float = 10.0,
        currency_symbol: str = "$",
    ):
        self.vapid_private_key = vapid_private_key
        self.vapid_public_key = vapid_public_key
        self.vapid_subject = vapid_subject
        self.timeout = timeout
        self.currency_symbol = currency_symbol

    @classmethod
    def from_settings(cls, settings: Settings) -> "PushNotifier":
        subject = settings.vapid_subject
        if not subject and settings.email_from:
            subject = f"mailto:{settings.email_from}"
        return cls(
            vapid_private_key=settings.vapid_private_key,
            vapid_public_key=settings.vapid_public_key,
            vapid_subject=subject,
            timeout=settings.push_timeout_seconds,
            currency_symbol=settings.currency_symbol,
        )

    @property
    def configured(self) -> bool:
        return bool(self.vapid_private_key and self.vapid_subject)

    async def send_price_alert(
        self, subscription: dict, alert: AlertView, current_price: Decimal
    ) -> None:
        """
        Push the new price to one subscription.

        Raises:
            PushSubscriptionExpired: The endpoint answered 404/410
            WebPushException: Any other push service rejection
        """
        payload = build_push_payload(alert, current_price, self.currency_symbol)
        await asyncio.to_thread(self._send, subscription, json.dumps(payload))
        logger.info(f"Push sent to user {alert.user_id} for alert {alert.alert_id}")

    def _send(self, subscription: dict, data: str) -> None:
        try:
            webpush(
                subscription_info=subscription,
                data=data,
                vapid_private_key=self.vapid_private_key,
                # webpush() adds aud/exp to the claims dict, so pass a fresh one
                vapid_claims={"sub": self.vapid_subject},
                timeout=self.timeout,
            )
        except WebPushException as e:
            status = getattr(e.response, "status_code", None)
            if status in EXPIRED_STATUS_CODES:
                raise PushSubscriptionExpired(
                    f"Subscription expired (HTTP {status})"
                ) from e
            raise
