from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from datetime import date
from typing import Protocol

from app.core.settings import settings


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailResult:
    ok: bool
    message_id: str | None = None
    error: str | None = None


class EmailSender(Protocol):
    def send_email(self, to: str, subject: str, html_body: str) -> EmailResult: ...


class ResendEmailSender:
    """Sends through the Resend HTTP API. Every call is bounded by ``timeout_s``."""

    def __init__(
        self,
        api_key: str,
        from_email: str,
        endpoint: str = "https://api.resend.com/emails",
        timeout_s: float = 15,
    ) -> None:
        self.api_key = api_key
        self.from_email = from_email
        self.endpoint = endpoint
        self.timeout_s = timeout_s

    def send_email(self, to: str, subject: str, html_body: str) -> EmailResult:
        import requests

        try:
            resp = requests.post(
                self.endpoint,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "from": self.from_email,
                    "to": [to],
                    "subject": subject,
                    "html": html_body,
                    "text": subject,
                },
                timeout=self.timeout_s,
            )
        except requests.Timeout:
            return EmailResult(ok=False, error=f"timeout after {self.timeout_s}s")
        except requests.RequestException as exc:
            return EmailResult(ok=False, error=f"transport error: {type(exc).__name__}")

        if resp.status_code >= 400:
            detail = (resp.text or "")[:500]
            return EmailResult(ok=False, error=f"resend error ({resp.status_code}): {detail}")
        try:
            body = resp.json() or {}
        except ValueError:
            body = {}
        return EmailResult(ok=True, message_id=(str(body.get("id")) if body.get("id") else None))


def build_sender() -> EmailSender | None:
    """Sender from settings, or None when no transport is configured (emails get queued)."""
    if not settings.email_configured:
        return None
    return ResendEmailSender(
        api_key=str(settings.resend_api_key),
        from_email=settings.from_email,
        endpoint=settings.resend_endpoint,
        timeout_s=settings.email_timeout_s,
    )


def _days_label(days: int) -> str:
    return f"{days} {'day' if days == 1 else 'days'}"


def expiry_reminder_subject(service_name: str, days_until_expiry: int) -> str:
    return f"Subscription Expiring Soon: {service_name} ({_days_label(days_until_expiry)} left)"


def expiry_reminder_html(
    service_name: str,
    domain_name: str | None,
    expiry_date: date,
    days_until_expiry: int,
    today: date,
) -> str:
    esc = html.escape
    domain_row = ""
    if domain_name:
        domain_row = f'<div class="info-row"><span>Domain:</span><span>{esc(domain_name)}</span></div>'
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="UTF-8"></head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h1>Subscription Expiring Soon!</h1>
  <p>Hello,</p>
  <p>This is a reminder that your subscription is expiring soon.</p>
  <h2>Your subscription expires in {_days_label(days_until_expiry)}</h2>
  <div class="section">
    <div class="info-row"><span>Service Name:</span><span><strong>{esc(service_name)}</strong></span></div>
    {domain_row}
    <div class="info-row"><span>Expiry Date:</span><span><strong>{expiry_date.isoformat()}</strong></span></div>
    <div class="info-row"><span>Today's Date:</span><span>{today.isoformat()}</span></div>
  </div>
  <p><strong>Don't forget to renew your subscription before it expires!</strong></p>
</body>
</html>
"""
