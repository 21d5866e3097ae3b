# backend/services/sms_service.py
import logging

import requests

from services.errors import IntegrationError

logger = logging.getLogger(__name__)

TWILIO_API_URL = "https://api.twilio.com/2010-04-01"


class TwilioSmsClient:
    def __init__(self, account_sid, auth_token, sender, base_url=TWILIO_API_URL, timeout=10):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.sender = sender
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def is_configured(self):
        return bool(self.account_sid and self.auth_token and self.sender)

    def send(self, to, body):
        if not self.is_configured:
            logger.info("Twilio not configured - SMS to %s skipped", to)
            return False

        url = f"{self.base_url}/Accounts/{self.account_sid}/Messages.json"
        try:
            response = requests.post(
                url,
                auth=(self.account_sid, self.auth_token),
                data={"From": self.sender, "To": to, "Body": body},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise IntegrationError("SMS delivery failed", details=str(e))

        logger.info("SMS sent to %s", to)
        return True


def build_sms_client(config):
    return TwilioSmsClient(
        account_sid=config.get("TWILIO_ACCOUNT_SID"),
        auth_token=config.get("TWILIO_AUTH_TOKEN"),
        sender=config.get("TWILIO_FROM"),
    )
