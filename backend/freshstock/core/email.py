"""
Email delivery for stock alerts
"""
import logging
import re
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List, Optional

from freshstock.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class EmailService:

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings

    def send_email(self, to_emails: List[str], subject: str, html_content: str) -> bool:
        """Send an email; returns False instead of raising when delivery fails."""
        if not self.settings.send_emails:
            logger.info(f"Email disabled, skipping '{subject}' to {to_emails}")
            return False

        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = self.settings.from_email
            msg["To"] = ", ".join(to_emails)

            text_content = re.sub(r"<[^>]+>", "", html_content)
            msg.attach(MIMEText(text_content, "plain"))
            msg.attach(MIMEText(html_content, "html"))

            with smtplib.SMTP(self.settings.smtp_server, self.settings.smtp_port) as server:
                server.starttls()
                if self.settings.smtp_username:
                    server.login(self.settings.smtp_username, self.settings.smtp_password)
                server.send_message(msg)

            logger.info(f"Email sent successfully to {to_emails}")
            return True

        except Exception as e:
            logger.error(f"Failed to send email to {to_emails}: {e}")
            return False
