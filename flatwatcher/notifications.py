"""Notification sinks that deliver change reports to external channels."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import List, Protocol

import requests

from .models import ReportSnapshot
from .report import DEFAULT_SITE_NAME, render_html, render_text

logger = logging.getLogger(__name__)

RESEND_ENDPOINT = "https://api.resend.com/emails"
DEFAULT_SENDER = "onboarding@resend.dev"

SEND_MODE_ALWAYS = "always"
SEND_MODE_CONDITIONAL = "conditional"
SEND_MODES = (SEND_MODE_ALWAYS, SEND_MODE_CONDITIONAL)


class Notifier(Protocol):
    """Protocol defining the notifier contract."""

    def send(self, report: ReportSnapshot, subject: str) -> None:
        ...


@dataclass
class ResendEmailNotifier:
    """Send the report as an HTML + text email through the Resend API."""

    api_key: str
    recipients: List[str]
    sender: str = DEFAULT_SENDER
    site_name: str = DEFAULT_SITE_NAME
    timeout: int = 10

    def send(self, report: ReportSnapshot, subject: str) -> None:
        logger.info("Sending email report to %s", ", ".join(self.recipients))
        response = requests.post(
            RESEND_ENDPOINT,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={
                "from": self.sender,
                "to": self.recipients,
                "subject": subject,
                "html": render_html(report, site_name=self.site_name),
                "text": render_text(report, site_name=self.site_name),
            },
            timeout=self.timeout,
        )
        response.raise_for_status()
        logger.info("Email accepted by Resend (id=%s)", response.json().get("id"))


@dataclass
class SlackNotifier:
    """Send the text report to Slack via Incoming Webhook."""

    webhook_url: str
    site_name: str = DEFAULT_SITE_NAME
    timeout: int = 10

    def send(self, report: ReportSnapshot, subject: str) -> None:
        payload = {"text": f"*{subject}*\n```{render_text(report, site_name=self.site_name)}```"}
        response = requests.post(
            self.webhook_url,
            json=payload,
            timeout=self.timeout,
        )
        response.raise_for_status()


@dataclass
class CompositeNotifier:
    """Fan-out notifier that forwards reports to multiple channels."""

    notifiers: List[Notifier] = field(default_factory=list)

    def send(self, report: ReportSnapshot, subject: str) -> bool:
        """Deliver to every channel; returns ``True`` only if all succeeded."""
        delivered = True
        for notifier in self.notifiers:
            try:
                notifier.send(report, subject)
            except Exception:  # noqa: BLE001
                delivered = False
                logger.exception("Failed to deliver notification via %s", type(notifier).__name__)
        return delivered


def parse_recipients(value: str) -> List[str]:
    return [address.strip() for address in value.split(",") if address.strip()]


def build_notifier_from_env(site_name: str = DEFAULT_SITE_NAME) -> CompositeNotifier | None:
    """Construct a notifier from environment configuration."""
    notifiers: list[Notifier] = []

    api_key = (os.getenv("RESEND_API_KEY") or "").strip()
    recipients = parse_recipients(os.getenv("RECIPIENT_EMAIL") or "")
    if api_key and recipients:
        sender = (os.getenv("SENDER_EMAIL") or "").strip() or DEFAULT_SENDER
        notifiers.append(
            ResendEmailNotifier(
                api_key=api_key,
                recipients=recipients,
                sender=sender,
                site_name=site_name,
            )
        )
    elif api_key or recipients:
        logger.warning("Email notifications need both RESEND_API_KEY and RECIPIENT_EMAIL")

    slack_webhook = (os.getenv("SLACK_WEBHOOK") or "").strip()
    if slack_webhook:
        notifiers.append(SlackNotifier(webhook_url=slack_webhook, site_name=site_name))

    if not notifiers:
        return None
    return CompositeNotifier(notifiers=notifiers)


def should_notify(send_mode: str, report_has_updates: bool) -> bool:
    """Apply the send policy: ``always`` sends, ``conditional`` needs updates."""
    if send_mode == SEND_MODE_CONDITIONAL:
        return report_has_updates
    if send_mode != SEND_MODE_ALWAYS:
        logger.warning("Unknown send mode %r; defaulting to always send", send_mode)
    return True


__all__ = [
    "CompositeNotifier",
    "Notifier",
    "ResendEmailNotifier",
    "SEND_MODES",
    "SlackNotifier",
    "build_notifier_from_env",
    "parse_recipients",
    "should_notify",
]
