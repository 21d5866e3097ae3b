# backend/services/email_service.py
"""
Email delivery.

Two modes:
- Mailjet (v3.1 send API) when MAILJET_API_KEY is set.
- Simulation: when credentials are absent every message is written to the
  log instead, so local runs and reviewers need no Mailjet account.
"""
import logging
from dataclasses import dataclass

import requests

from services.errors import IntegrationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailRecipient:
    email: str
    name: str | None = None

    @property
    def display_name(self):
        return self.name or self.email.split("@")[0]


@dataclass(frozen=True)
class EmailTemplate:
    subject: str
    text: str
    html: str | None = None


def _as_recipients(to):
    if isinstance(to, (list, tuple)):
        return list(to)
    return [to]


class MailjetMailer:
    is_configured = True

    def __init__(self, api_key, api_secret, sender, sender_name, api_url, timeout=10):
        self.api_key = api_key
        self.api_secret = api_secret or ""
        self.sender = sender
        self.sender_name = sender_name
        self.api_url = api_url
        self.timeout = timeout

    def send(self, to, template):
        """Send one message to one or more recipients.

        Raises IntegrationError when Mailjet rejects the request.
        """
        recipients = _as_recipients(to)
        if not recipients:
            raise IntegrationError("No recipients")

        payload = {
            "Messages": [
                {
                    "From": {"Email": self.sender, "Name": self.sender_name},
                    "To": [
                        {"Email": r.email, "Name": r.display_name} for r in recipients
                    ],
                    "Subject": template.subject,
                    "TextPart": template.text,
                    "HTMLPart": template.html or template.text.replace("\n", "<br>"),
                }
            ]
        }

        try:
            response = requests.post(
                self.api_url,
                json=payload,
                auth=(self.api_key, self.api_secret),
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise IntegrationError("Email delivery failed", details=str(e))

        logger.info(
            "Email sent: %s (%d recipients)", template.subject, len(recipients)
        )
        return True


class ConsoleMailer:
    """Simulation mode: logs the message instead of sending it."""

    is_configured = False

    def __init__(self, sender="noreply@bishvilam.com"):
        self.sender = sender

    def send(self, to, template):
        recipients = _as_recipients(to)
        logger.info(
            "SIMULATED EMAIL\nFrom: %s\nTo: %s\nSubject: %s\n%s",
            self.sender,
            ", ".join(r.email for r in recipients),
            template.subject,
            template.text,
        )
        return True


def build_mailer(config):
    if config.get("MAILJET_API_KEY"):
        return MailjetMailer(
            api_key=config["MAILJET_API_KEY"],
            api_secret=config.get("MAILJET_API_SECRET"),
            sender=config["MAIL_FROM"],
            sender_name=config["MAIL_FROM_NAME"],
            api_url=config["MAILJET_API_URL"],
        )
    logger.warning("Mailjet not configured - emails will be simulated")
    return ConsoleMailer(sender=config.get("MAIL_FROM", "noreply@bishvilam.com"))
