"""Outgoing email.

Login codes are delivered over SMTP with STARTTLS. A message that cannot be
sent raises ``DeliveryError`` so the caller can undo the work that depended
on it.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from config import (
    EMAIL_FROM,
    SCHOOL_NAME,
    SMTP_PASSWORD,
    SMTP_PORT,
    SMTP_SERVER,
    SMTP_TIMEOUT_SECONDS,
    SMTP_USERNAME,
)
from core.exceptions import DeliveryError

logger = logging.getLogger(__name__)

OTP_EMAIL_HTML = """\
<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; background-color: #f8fafc;">
    <div style="max-width: 600px; margin: 40px auto; background: #ffffff; padding: 30px;">
      <h1 style="color: #1e40af;">{school_name}</h1>
      <p>Hello {name},</p>
      <p>Use this code to sign in:</p>
      <p style="font-size: 32px; font-weight: bold; letter-spacing: 8px;">{code}</p>
      <p>The code expires in {minutes} minutes and can only be used once.</p>
      <p>If you did not request it, you can ignore this message.</p>
    </div>
  </body>
</html>
"""

OTP_EMAIL_TEXT = """\
Hello {name},

Your {school_name} access code is {code}.
It expires in {minutes} minutes and can only be used once.

If you did not request it, you can ignore this message.
"""


class EmailDispatcher:
    """Sends email through an SMTP relay."""

    def __init__(
        self,
        smtp_server: str = SMTP_SERVER,
        smtp_port: int = SMTP_PORT,
        smtp_username: Optional[str] = SMTP_USERNAME,
        smtp_password: Optional[str] = SMTP_PASSWORD,
        from_email: Optional[str] = EMAIL_FROM,
        timeout: float = SMTP_TIMEOUT_SECONDS,
    ):
        self.smtp_server = smtp_server
        self.smtp_port = smtp_port
        self.smtp_username = smtp_username
        self.smtp_password = smtp_password
        self.from_email = from_email or smtp_username
        self.timeout = timeout

    def send(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> None:
        """Send one email.

        Raises:
            DeliveryError: If SMTP is not configured or the relay fails.
        """
        if not self.smtp_username or not self.smtp_password:
            logger.warning("SMTP credentials not configured, cannot send email")
            raise DeliveryError("Email delivery is not configured")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to_email
        if text_content:
            msg.attach(MIMEText(text_content, "plain"))
        msg.attach(MIMEText(html_content, "html"))

        try:
            with smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=self.timeout) as server:
                server.starttls()
                server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Email sending to %s failed: %s", to_email, e)
            raise DeliveryError("Could not send the email") from e

        logger.info("Email sent successfully to %s", to_email)

    def send_login_code(self, to_email: str, code: str, name: str, expires_in_minutes: int) -> None:
        """Send a one-time login code."""
        values = {
            "school_name": SCHOOL_NAME,
            "name": name or "user",
            "code": code,
            "minutes": expires_in_minutes,
        }
        self.send(
            to_email,
            f"Your access code - {SCHOOL_NAME}",
            OTP_EMAIL_HTML.format(**values),
            OTP_EMAIL_TEXT.format(**values),
        )
