from __future__ import annotations

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from decimal import Decimal
from email.message import EmailMessage

import httpx

from budgetwatch.core.config import Settings
from budgetwatch.services.budget_alerts.errors import NotifyError
from budgetwatch.services.budget_alerts.types import BudgetStatus

notify_logger = logging.getLogger("budgetwatch.notify")


def format_amount(value: Decimal) -> str:
    """Plain amount without exponent or trailing zeros: 500.00 -> 500, 12.50 -> 12.5."""
    text = f"{value:f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


@dataclass(frozen=True)
class AlertEmailParams:
    user_name: str | None
    category: str
    spent: Decimal
    limit: Decimal
    status: BudgetStatus


def alert_subject(category: str) -> str:
    return f"⚠ Budget Alert: {category}"


def render_alert_body(params: AlertEmailParams) -> str:
    greeting = f"Hi {params.user_name}," if params.user_name else "Hi,"
    return "\n".join(
        [
            greeting,
            "",
            f"Your budget for {params.category} is {params.status.label}.",
            f"You have spent ${format_amount(params.spent)} out of your limit of ${format_amount(params.limit)}.",
            "",
            "Review your recent transactions to get back on track.",
        ]
    )


class LogNotifier:
    """Fallback when no delivery channel is configured: records the alert, delivers nothing."""

    channel = "log"

    async def send(self, destination: str | None, subject: str, params: AlertEmailParams) -> bool:
        notify_logger.info(
            "alert_not_delivered channel=log to=%s subject=%r status=%s",
            destination,
            subject,
            params.status.value,
        )
        return False


class EmailNotifier:
    channel = "email"

    def __init__(
        self,
        host: str | None,
        port: int,
        user: str | None,
        password: str | None,
        sender: str | None = None,
        timeout: float = 15.0,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender or user
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return all([self.host, self.user, self.password, self.sender])

    def _send_sync(self, destination: str, subject: str, body: str) -> None:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = destination
        msg.set_content(body)
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as s:
            s.starttls()
            s.login(self.user, self.password)
            s.send_message(msg)

    async def send(self, destination: str | None, subject: str, params: AlertEmailParams) -> bool:
        if not self.configured or not destination:
            return False
        try:
            await asyncio.to_thread(self._send_sync, destination, subject, render_alert_body(params))
        except (smtplib.SMTPException, OSError) as e:
            raise NotifyError(f"Email to {destination} failed: {e!s}") from e
        return True


class SlackWebhookNotifier:
    channel = "slack"

    def __init__(self, webhook_url: str | None, timeout: float = 15.0, transport: httpx.AsyncBaseTransport | None = None):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.webhook_url)

    async def send(self, destination: str | None, subject: str, params: AlertEmailParams) -> bool:
        if not self.configured:
            return False
        text = f"*{subject}*\n{render_alert_body(params)}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as c:
                r = await c.post(self.webhook_url, json={"text": text})
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise NotifyError(f"Slack webhook failed: {e!s}") from e
        if r.status_code >= 300:
            raise NotifyError(f"Slack webhook returned {r.status_code}")
        return True


class CompositeNotifier:
    """
    Sends through every channel in turn.
    Delivered if at least one channel accepted the alert; raises only when every channel failed.
    """

    channel = "composite"

    def __init__(self, notifiers: list):
        self.notifiers = notifiers

    async def send(self, destination: str | None, subject: str, params: AlertEmailParams) -> bool:
        delivered = False
        errors: list[str] = []
        for n in self.notifiers:
            try:
                if await n.send(destination, subject, params):
                    delivered = True
            except NotifyError as e:
                notify_logger.warning("alert_channel_failed channel=%s error=%s", n.channel, e)
                errors.append(f"{n.channel}: {e}")
            except Exception as e:
                notify_logger.exception("alert_channel_crashed channel=%s", n.channel)
                errors.append(f"{n.channel}: {e!r}")
        if errors and len(errors) == len(self.notifiers):
            raise NotifyError("; ".join(errors))
        return delivered


def build_notifier(cfg: Settings):
    channels: list = []
    email = EmailNotifier(
        cfg.smtp_host,
        cfg.smtp_port,
        cfg.smtp_user,
        cfg.smtp_password,
        sender=cfg.smtp_from,
        timeout=cfg.notify_timeout_seconds,
    )
    if email.configured:
        channels.append(email)
    slack = SlackWebhookNotifier(cfg.slack_webhook_url, timeout=cfg.notify_timeout_seconds)
    if slack.configured:
        channels.append(slack)
    if not channels:
        return LogNotifier()
    if len(channels) == 1:
        return channels[0]
    return CompositeNotifier(channels)
