import smtplib
from datetime import datetime, timezone
from email.message import EmailMessage
from email.utils import format_datetime
from typing import Dict

from .config import settings
from .logging import jlog

RECOMMENDED_ACTIONS: Dict[str, str] = {
    "QUOTA_EXCEEDED": "1. Check your OpenAI billing dashboard\n2. Upgrade your plan if needed\n3. Add payment method if missing",
    "RATE_LIMIT": "1. Consider upgrading your OpenAI plan for higher rate limits\n2. Implement request queuing if traffic is high\n3. Contact OpenAI support for rate limit increase",
    "INVALID_KEY": "1. Verify your OpenAI API key is correct\n2. Check if the key has been revoked\n3. Generate a new API key from OpenAI dashboard",
    "SERVICE_ERROR": "1. Check OpenAI status page: https://status.openai.com\n2. Wait a few minutes and monitor\n3. Contact OpenAI support if issue persists",
    "UNKNOWN_ERROR": "1. Check the error details above\n2. Verify your OpenAI account status\n3. Review recent changes to your configuration",
}
DEFAULT_ACTION = "Please review the error details and check your OpenAI account settings."

BODY_TEMPLATE = """
Hello Developer,

Your AI Customer Service widget has encountered an issue that requires immediate attention.

Error Type: {subject}
Error Code: {category}
Time: {timestamp}

Error Details:
{details}

Recommended Actions:
{actions}

Users are currently being shown alternative contact options (social media links).

---
AI Customer Service Widget SDK
"""

def recommended_action(category: str) -> str:
    return RECOMMENDED_ACTIONS.get(category, DEFAULT_ACTION)

def build_alert_message(
    recipient: str,
    sender: str,
    subject: str,
    details: str,
    category: str,
    now: datetime | None = None,
) -> EmailMessage:
    now = now or datetime.now(timezone.utc)
    msg = EmailMessage()
    msg["From"] = sender
    msg["To"] = recipient
    msg["Subject"] = f"ALERT: AI Customer Service - {subject}"
    msg.set_content(
        BODY_TEMPLATE.format(
            subject=subject,
            category=category,
            timestamp=format_datetime(now, usegmt=True),
            details=details,
            actions=recommended_action(category),
        )
    )
    return msg

def _deliver(msg: EmailMessage) -> None:
    host, port = settings.smtp_host, int(settings.smtp_port)  # type: ignore[arg-type]
    timeout = settings.smtp_timeout_s
    if port == 465:
        with smtplib.SMTP_SSL(host, port, timeout=timeout) as server:  # type: ignore[arg-type]
            server.login(settings.smtp_user, settings.smtp_password)  # type: ignore[arg-type]
            server.send_message(msg)
        return
    with smtplib.SMTP(host, port, timeout=timeout) as server:  # type: ignore[arg-type]
        server.ehlo()
        if server.has_extn("starttls"):
            server.starttls()
            server.ehlo()
        server.login(settings.smtp_user, settings.smtp_password)  # type: ignore[arg-type]
        server.send_message(msg)

def send_error_notification(recipient: str, subject: str, details: str, category: str) -> None:
    """
    Email the developer about a failed chat completion. Best effort: runs as a
    background task and never raises.
    """
    if not all([recipient, settings.smtp_host, settings.smtp_port, settings.smtp_user, settings.smtp_password]):
        jlog(event="alert_skipped", severity="DEBUG", reason="smtp_not_configured", category=category, subject=subject)
        return

    sender = settings.from_email or settings.smtp_user
    try:
        msg = build_alert_message(recipient, sender, subject, details, category)  # type: ignore[arg-type]
        _deliver(msg)
    except Exception as e:
        jlog(event="alert_send_failed", severity="WARNING", category=category, error=str(e))
        return
    jlog(event="alert_sent", category=category, subject=subject, recipient=recipient)
