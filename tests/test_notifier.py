from __future__ import annotations

import smtplib
import unittest
from decimal import Decimal
from unittest import mock

import httpx

from budgetwatch.core.config import Settings
from budgetwatch.services.budget_alerts.errors import NotifyError
from budgetwatch.services.budget_alerts.notifier import (
    AlertEmailParams,
    CompositeNotifier,
    EmailNotifier,
    LogNotifier,
    SlackWebhookNotifier,
    build_notifier,
    format_amount,
    alert_subject,
    render_alert_body,
)
from budgetwatch.services.budget_alerts.types import BudgetStatus

PARAMS = AlertEmailParams(
    user_name="Sam",
    category="food",
    spent=Decimal("450.00"),
    limit=Decimal("500.00"),
    status=BudgetStatus.NEAR_LIMIT,
)


class StubChannel:
    def __init__(self, channel, outcome):
        self.channel = channel
        self.outcome = outcome
        self.calls = 0

    async def send(self, destination, subject, params):
        self.calls += 1
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


class FormattingTests(unittest.TestCase):
    def test_format_amount(self):
        self.assertEqual(format_amount(Decimal("500.00")), "500")
        self.assertEqual(format_amount(Decimal("12.50")), "12.5")
        self.assertEqual(format_amount(Decimal("0.05")), "0.05")
        self.assertEqual(format_amount(Decimal("1E+3")), "1000")
        self.assertEqual(format_amount(Decimal("0")), "0")

    def test_body_mentions_category_status_and_amounts(self):
        body = render_alert_body(PARAMS)
        self.assertTrue(body.startswith("Hi Sam,"))
        self.assertIn("Your budget for food is near limit.", body)
        self.assertIn("$450 out of your limit of $500", body)

    def test_subject_carries_warning_marker(self):
        self.assertEqual(alert_subject("food"), "⚠ Budget Alert: food")


class BuildNotifierTests(unittest.TestCase):
    def test_nothing_configured_falls_back_to_log(self):
        self.assertIsInstance(build_notifier(Settings(_env_file=None)), LogNotifier)

    def test_single_channel(self):
        cfg = Settings(_env_file=None, slack_webhook_url="https://hooks.example.com/x")
        self.assertIsInstance(build_notifier(cfg), SlackWebhookNotifier)

    def test_email_requires_full_smtp_config(self):
        cfg = Settings(_env_file=None, smtp_host="smtp.example.com", smtp_user="bot@example.com")
        self.assertIsInstance(build_notifier(cfg), LogNotifier)

    def test_both_channels(self):
        cfg = Settings(
            _env_file=None,
            smtp_host="smtp.example.com",
            smtp_user="bot@example.com",
            smtp_password="secret",
            slack_webhook_url="https://hooks.example.com/x",
        )
        notifier = build_notifier(cfg)
        self.assertIsInstance(notifier, CompositeNotifier)
        self.assertEqual([n.channel for n in notifier.notifiers], ["email", "slack"])


class NotifierBehaviourTests(unittest.IsolatedAsyncioTestCase):
    async def test_unconfigured_email_is_not_delivered(self):
        self.assertFalse(await EmailNotifier(None, 587, None, None).send("sam@example.com", "s", PARAMS))

    async def test_email_without_destination_is_not_delivered(self):
        n = EmailNotifier("smtp.example.com", 587, "bot@example.com", "secret")
        self.assertFalse(await n.send(None, "s", PARAMS))

    async def test_log_notifier_never_delivers(self):
        self.assertFalse(await LogNotifier().send("sam@example.com", "s", PARAMS))

    async def test_composite_delivered_if_any_channel_succeeds(self):
        failing = StubChannel("email", NotifyError("down"))
        ok = StubChannel("slack", True)
        self.assertTrue(await CompositeNotifier([failing, ok]).send("sam@example.com", "s", PARAMS))
        self.assertEqual((failing.calls, ok.calls), (1, 1))

    async def test_composite_raises_when_all_channels_fail(self):
        notifier = CompositeNotifier([StubChannel("email", NotifyError("a")), StubChannel("slack", NotifyError("b"))])
        with self.assertRaises(NotifyError):
            await notifier.send("sam@example.com", "s", PARAMS)

    async def test_composite_isolates_unexpected_channel_errors(self):
        crashing = StubChannel("email", RuntimeError("boom"))
        ok = StubChannel("slack", True)
        self.assertTrue(await CompositeNotifier([crashing, ok]).send("sam@example.com", "s", PARAMS))
        self.assertEqual(ok.calls, 1)


class EmailNotifierTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.notifier = EmailNotifier("smtp.example.com", 587, "bot@example.com", "secret", timeout=3)

    async def test_sends_over_starttls(self):
        with mock.patch("budgetwatch.services.budget_alerts.notifier.smtplib.SMTP") as smtp:
            self.assertTrue(await self.notifier.send("sam@example.com", "Budget Alert: food", PARAMS))
        smtp.assert_called_once_with("smtp.example.com", 587, timeout=3)
        conn = smtp.return_value.__enter__.return_value
        conn.starttls.assert_called_once()
        conn.login.assert_called_once_with("bot@example.com", "secret")
        msg = conn.send_message.call_args.args[0]
        self.assertEqual(msg["To"], "sam@example.com")
        self.assertEqual(msg["Subject"], "Budget Alert: food")

    async def test_smtp_error_raises_notify_error(self):
        with mock.patch(
            "budgetwatch.services.budget_alerts.notifier.smtplib.SMTP",
            side_effect=smtplib.SMTPException("auth rejected"),
        ):
            with self.assertRaises(NotifyError):
                await self.notifier.send("sam@example.com", "s", PARAMS)

    async def test_connection_error_raises_notify_error(self):
        with mock.patch(
            "budgetwatch.services.budget_alerts.notifier.smtplib.SMTP",
            side_effect=ConnectionRefusedError("refused"),
        ):
            with self.assertRaises(NotifyError):
                await self.notifier.send("sam@example.com", "s", PARAMS)


class SlackWebhookNotifierTests(unittest.IsolatedAsyncioTestCase):
    def notifier(self, status_code, seen=None):
        def handler(request):
            if seen is not None:
                seen.append(request)
            return httpx.Response(status_code)

        return SlackWebhookNotifier("https://hooks.example.com/x", transport=httpx.MockTransport(handler))

    async def test_posts_subject_and_body(self):
        seen = []
        self.assertTrue(await self.notifier(200, seen).send(None, "Budget Alert: food", PARAMS))
        self.assertEqual(str(seen[0].url), "https://hooks.example.com/x")
        self.assertIn(b"Budget Alert: food", seen[0].content)

    async def test_non_2xx_raises_notify_error(self):
        with self.assertRaises(NotifyError):
            await self.notifier(500).send(None, "s", PARAMS)

    async def test_malformed_webhook_url_raises_notify_error(self):
        with self.assertRaises(NotifyError):
            await SlackWebhookNotifier("https://hooks.example.com/x\nbad").send(None, "s", PARAMS)


if __name__ == "__main__":
    unittest.main()
