"""Email service for registration verification codes"""

import logging
from typing import Optional

from exam_portal.backends.email_client import EmailClient
from exam_portal.config import config

logger = logging.getLogger(__name__)

VERIFICATION_SUBJECT = "Your exam registration verification code"


class RegistrationEmailService:
    """Delivers verification codes to applicants"""

    def __init__(self, email_client: EmailClient, ttl_minutes: Optional[int] = None):
        self.email_client = email_client
        self.ttl_minutes = ttl_minutes or config["stage_ttl_minutes"]

    def _compose(self, code: str, name: str) -> str:
        return f"""Hi {name},

Thank you for registering for the college entrance examination.

Your verification code is: {code}

The code expires in {self.ttl_minutes} minutes. If you did not start a
registration, you can ignore this email.

Best regards,
Guidance Office"""

    async def send_code(self, email: str, code: str, name: str) -> bool:
        """
        Send a verification code.

        Returns:
            bool: True if the email was accepted for delivery, False otherwise.
            A failed delivery never affects the staged registration.
        """
        try:
            await self.email_client.send_email(
                to=email,
                text=self._compose(code, name),
                subject=VERIFICATION_SUBJECT,
            )
            logger.info(f"Verification code sent to {email}")
            return True
        except Exception as e:
            logger.error(f"Failed to send verification code to {email}: {e}")
            return False


def get_mailer() -> RegistrationEmailService:
    """FastAPI dependency building the mailer from config"""
    return RegistrationEmailService(EmailClient(config))
