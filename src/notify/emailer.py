"""Email notifications over an SMTP relay.

Supports STARTTLS (587) or implicit TLS (465). smtplib is blocking, so each
send runs in a worker thread; the socket timeout bounds a hung relay.
"""

import asyncio
import html
import logging
import smtplib
import ssl
from decimal import Decimal
from email.message import EmailMessage

from src.config import Settings
from src.detect.alert_matcher import AlertView

logger = logging.getLogger(__name__)


class NotificationConfigError(RuntimeError):
    """Raised when a channel is used without its required configuration."""


def build_price_alert_email(
    alert: AlertView,
    current_price: Decimal,
    sender: str,
    currency_symbol: str = "$",
) -> EmailMessage:
    """Build the multipart price-drop email for one alert."""
    # Scraped titles can span lines; header values must not
    title = " ".join((alert.product_name or "").split())
    name = title or "your tracked product"
    price = f"{currency_symbol}{current_price:.2f}"

    plain = f"The price for {name} ({alert.product_url}) has dropped to {price}."

    body = (
        "<html>"
        "<body>"
        '<p>The price for <b><a href="{url}">{name}</a></b> has dropped to <b>{price}</b>!</p>'
        '<p style="font-size:12px; color: #666;">Your target was {target}. '
        "This alert is now paused until you re-enable it.</p>"
        "</body>"
        "</html>"
    ).format(
        url=html.escape(alert.product_url, quote=True),
        name=html.escape(name),
        price=html.escape(price),
        target=html.escape(f"{currency_symbol}{alert.target_price:.2f}"),
    )

    msg = EmailMessage()
    msg["Subject"] = f"Price Drop Alert: {title or 'Your Tracked Product'}"
    msg["From"] = sender
    msg["To"] = alert.email
    msg.set_content(plain)
    msg.add_alternative(body, subtype="html")
    return msg


class EmailNotifier:
    """SMTP client for price alert emails. One instance per process."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str = "",
        password: str = "",
        sender: str = "",
        use_tls: bool = True,
        timeout: float = 20.0,
        currency_symbol: str = "$",
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.use_tls = use_tls
        self.timeout = timeout
        self.currency_symbol = currency_symbol

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmailNotifier":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            sender=settings.email_from or settings.smtp_username,
            use_tls=settings.smtp_use_tls,
            timeout=settings.smtp_timeout_seconds,
            currency_symbol=settings.currency_symbol,
        )

    @property
    def configured(self) -> bool:
        return bool(self.host and self.sender)

    async def send_price_alert(self, alert: AlertView, current_price: Decimal) -> None:
        """
        Email the alert's user about the new price.

        Raises:
            NotificationConfigError: SMTP host or sender missing
            smtplib.SMTPException / OSError: The relay rejected or was unreachable
        """
        if not self.configured:
            raise NotificationConfigError("SMTP host and sender address are required")

        msg = build_price_alert_email(
            alert, current_price, self.sender, self.currency_symbol
        )
        await asyncio.to_thread(self._send, msg)
        logger.info(f"Email sent to {alert.email} for alert {alert.alert_id}")

    def _send(self, msg: EmailMessage) -> None:
        context = ssl.create_default_context()
        if self.use_tls and self.port == 465:
            with smtplib.SMTP_SSL(
                self.host, self.port, context=context, timeout=self.timeout
            ) as s:
                self._login(s)
                s.send_message(msg)
            return

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as s:
            s.ehlo()
            if self.use_tls:
                s.starttls(context=context)
                s.ehlo()
            self._login(s)
            s.send_message(msg)

    def _login(self, smtp: smtplib.SMTP) -> None:
        if self.username:
            smtp.login(self.username, self.password)
