"""Email service for account notifications (welcome, password reset)."""

import asyncio
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from app.core.config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """Service for sending emails via SMTP."""

    def __init__(self):
        self.host = settings.SMTP_HOST
        self.port = settings.SMTP_PORT
        self.user = settings.SMTP_USER
        self.password = settings.SMTP_PASSWORD
        self.from_email = settings.SMTP_FROM_EMAIL
        self.from_name = settings.SMTP_FROM_NAME
        self.use_tls = settings.SMTP_TLS

    @property
    def is_configured(self) -> bool:
        """Check if email is properly configured."""
        return settings.email_enabled

    def _wrap(self, title: str, content: str) -> str:
        return f"""
<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>{title}</title></head>
<body style="font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; color: #1a1a2e;">
    <div style="max-width: 600px; margin: 0 auto; padding: 24px;">
        <h1 style="font-size: 22px;">{settings.APP_NAME}</h1>
        {content}
        <p style="font-size: 12px; color: #6c757d;">
            You are receiving this email because of your {settings.APP_NAME} account.
        </p>
    </div>
</body>
</html>
"""

    def _deliver(self, to_email: str, message: str) -> None:
        context = ssl.create_default_context()
        if self.use_tls:
            with smtplib.SMTP(self.host, self.port) as server:
                server.starttls(context=context)
                server.login(self.user, self.password)
                server.sendmail(self.from_email, to_email, message)
        else:
            with smtplib.SMTP_SSL(self.host, self.port, context=context) as server:
                server.login(self.user, self.password)
                server.sendmail(self.from_email, to_email, message)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> bool:
        """
        Send an email.

        Args:
            to_email: Recipient email address
            subject: Email subject
            html_content: HTML body content
            text_content: Plain text fallback (optional)

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.is_configured:
            logger.warning("Email not configured, skipping send")
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to_email

        if text_content:
            msg.attach(MIMEText(text_content, "plain", "utf-8"))
        msg.attach(MIMEText(html_content, "html", "utf-8"))

        try:
            # smtplib blocks; keep it off the event loop
            await asyncio.to_thread(self._deliver, to_email, msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            return False

        logger.info(f"Email sent successfully to {to_email}: {subject}")
        return True

    async def send_welcome_email(self, to_email: str, username: str) -> bool:
        content = f"""
        <p>Hi {username},</p>
        <p>Your account is ready. Start tracking your crypto holdings at
        <a href="{settings.CLIENT_URL}">{settings.CLIENT_URL}</a>.</p>
        """
        return await self.send_email(
            to_email=to_email,
            subject=f"Welcome to {settings.APP_NAME}",
            html_content=self._wrap("Welcome", content),
            text_content=f"Hi {username}, your account is ready: {settings.CLIENT_URL}",
        )

    async def send_password_reset_email(self, to_email: str, token: str) -> bool:
        reset_url = f"{settings.CLIENT_URL}/reset-password?token={token}"
        minutes = settings.PASSWORD_RESET_EXPIRE_MINUTES
        content = f"""
        <p>You asked to reset your password.</p>
        <p><a href="{reset_url}" style="display: inline-block; padding: 12px 24px;
            background: #6366f1; color: #fff; border-radius: 8px; text-decoration: none;">
            Reset my password</a></p>
        <p>This link is valid for <strong>{minutes} minutes</strong>.
        If you did not request it, ignore this email.</p>
        """
        return await self.send_email(
            to_email=to_email,
            subject="Reset your password",
            html_content=self._wrap("Password reset", content),
            text_content=f"Reset your password ({minutes} minutes): {reset_url}",
        )


email_service = EmailService()
