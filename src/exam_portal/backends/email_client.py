import logging
from typing import Dict, Optional

from mailgun.client import Client

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "[Exam Portal] Verify your email address"


class EmailClient:
    def __init__(self, config: dict):
        self.domain = config["mailgun_domain"]
        self.sender_email = config["sender_email"]

        self.client = Client(auth=("api", config["mailgun_api_key"]))

    async def send_email(
        self,
        to: str,
        text: str,
        subject: Optional[str] = None,
        tag: str = "registration-verification",
    ) -> Dict:
        """
        Send a plain-text email through the Mailgun API

        Args:
            to: Recipient email address
            text: Email body text
            subject: Email subject, DEFAULT_SUBJECT when omitted
            tag: Mailgun tag used for delivery analytics

        Returns:
            Dict containing the Mailgun API response

        Raises:
            RuntimeError: If Mailgun rejects the message or cannot be reached
        """
        data = {
            "from": self.sender_email,
            "to": to,
            "subject": subject or DEFAULT_SUBJECT,
            "text": text,
            "o:tag": tag,
        }

        try:
            req = self.client.messages.create(data=data, domain=self.domain)
            response = req.json()
        except Exception as e:
            logger.error(f"Failed to reach Mailgun for {to}: {e}")
            raise RuntimeError(f"Email sending failed: {e}") from e

        if req.status_code != 200:
            logger.error(f"Mailgun API error: {req.status_code} - {response}")
            raise RuntimeError(f"Failed to send email: {response}")

        logger.info(f"Email sent to {to}: {response.get('id', 'unknown')}")
        return response
