"""
Email Service for InfinitiFlow
==============================
Transactional e-mail for the account lifecycle:
- Email verification on signup
- Password reset
- Welcome mail after verification

Callers pick a template by name and pass its data; the service renders
HTML + plain text and reports success as a bool. Supports both SMTP and
SendGrid; every send is bounded by EMAIL_SEND_TIMEOUT_SECONDS.
"""

import aiosmtplib
import asyncio
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional, Dict, Any, Tuple
from datetime import datetime
from html import escape
from fastapi import Request

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To, Content

from infinitiflow.core.config import settings
from infinitiflow.core.logging_config import logger


TEMPLATE_EMAIL_VERIFICATION = "emailVerification"
TEMPLATE_PASSWORD_RESET = "passwordReset"
TEMPLATE_WELCOME = "welcome"

DEFAULT_SUBJECTS = {
    TEMPLATE_EMAIL_VERIFICATION: "Please verify your email address",
    TEMPLATE_PASSWORD_RESET: "Your password reset token (valid for 10 minutes)",
    TEMPLATE_WELCOME: "Welcome to InfinitiFlow!",
}

_STYLE = """
    body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; }
    .container { max-width: 600px; margin: 0 auto; padding: 20px; }
    .header { background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); color: white; padding: 30px; text-align: center; border-radius: 10px 10px 0 0; }
    .content { background: #f9fafb; padding: 30px; border-radius: 0 0 10px 10px; }
    .button { display: inline-block; background: #667eea; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; font-weight: 600; margin: 20px 0; }
    .footer { text-align: center; margin-top: 30px; font-size: 12px; color: #6b7280; }
"""


def _layout(title: str, body: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head><style>{_STYLE}</style></head>
    <body>
        <div class="container">
            <div class="header"><h1>{title}</h1></div>
            <div class="content">{body}</div>
            <div class="footer">
                <p>&copy; {datetime.utcnow().year} InfinitiFlow. All rights reserved.</p>
            </div>
        </div>
    </body>
    </html>
    """


class EmailService:
    """Async email service using SMTP or SendGrid"""

    def __init__(self, timeout: Optional[float] = None):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.from_email = settings.EMAIL_FROM
        self.from_name = settings.EMAIL_FROM_NAME
        self.sendgrid_api_key = settings.SENDGRID_API_KEY
        self.use_sendgrid = settings.USE_SENDGRID and bool(self.sendgrid_api_key)
        self.timeout = timeout if timeout is not None else settings.EMAIL_SEND_TIMEOUT_SECONDS

    @property
    def is_configured(self) -> bool:
        """Check if email service is properly configured"""
        if self.use_sendgrid:
            return bool(self.sendgrid_api_key)
        return bool(self.smtp_user and self.smtp_password)

    async def send_email(
        self,
        to_email: str,
        template: str,
        data: Dict[str, Any],
        subject: Optional[str] = None
    ) -> bool:
        """
        Render a template and send it.

        Returns True if delivered, False on misconfiguration, transport
        failure or timeout.
        """
        if not self.is_configured:
            logger.warning("[Email] Email service not configured, skipping email send")
            return False

        html_content, text_content = self.render(template, data)
        subject = subject or DEFAULT_SUBJECTS.get(template, "InfinitiFlow")

        if self.use_sendgrid:
            sender = self._send_via_sendgrid(to_email, subject, html_content, text_content)
        else:
            sender = self._send_via_smtp(to_email, subject, html_content, text_content)

        try:
            return await asyncio.wait_for(sender, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"[Email] Timed out after {self.timeout}s sending '{template}' to {to_email}")
            return False

    async def _send_via_sendgrid(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """Send email via SendGrid API"""
        try:
            message = Mail(
                from_email=Email(self.from_email, self.from_name),
                to_emails=To(to_email),
                subject=subject,
                html_content=Content("text/html", html_content)
            )

            if text_content:
                message.add_content(Content("text/plain", text_content))

            sg = SendGridAPIClient(self.sendgrid_api_key)
            # SendGrid client is synchronous
            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(None, sg.send, message)

            if response.status_code in [200, 201, 202]:
                logger.info(f"[Email/SendGrid] Sent '{subject}' to {to_email}")
                return True
            logger.error(f"[Email/SendGrid] Failed with status {response.status_code}: {response.body}")
            return False

        except Exception as e:
            logger.error(f"[Email/SendGrid] Failed to send email to {to_email}: {e}")
            return False

    async def _send_via_smtp(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """Send email via SMTP"""
        try:
            message = MIMEMultipart("alternative")
            message["From"] = f"{self.from_name} <{self.from_email}>"
            message["To"] = to_email
            message["Subject"] = subject

            if text_content:
                message.attach(MIMEText(text_content, "plain"))
            message.attach(MIMEText(html_content, "html"))

            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user,
                password=self.smtp_password,
                start_tls=True,
                timeout=self.timeout,
            )

            logger.info(f"[Email/SMTP] Sent '{subject}' to {to_email}")
            return True

        except Exception as e:
            logger.error(f"[Email/SMTP] Failed to send email to {to_email}: {e}")
            return False

    # ==========================================
    # Templates
    # ==========================================

    def render(self, template: str, data: Dict[str, Any]) -> Tuple[str, str]:
        """Return (html, text) for a named template"""
        name = data.get("firstName") or "there"

        if template == TEMPLATE_EMAIL_VERIFICATION:
            url = data.get("verifyURL", "")
            html = _layout("Welcome to InfinitiFlow!", f"""
                <p>Hi {escape(name)},</p>
                <p>Thanks for signing up! Please verify your email address to get started.</p>
                <p style="text-align: center;"><a href="{url}" class="button">Verify Email Address</a></p>
                <p style="font-size: 14px; color: #6b7280;">Or paste this link in your browser: {url}</p>
                <p style="font-size: 14px; color: #6b7280;">This link will expire in 24 hours.</p>
            """)
            text = (
                f"Hi {name},\n\n"
                f"Thanks for signing up! Verify your email address here:\n{url}\n\n"
                "This link will expire in 24 hours.\n"
            )
            return html, text

        if template == TEMPLATE_PASSWORD_RESET:
            url = data.get("resetURL", "")
            html = _layout("Password Reset", f"""
                <p>Hi {escape(name)},</p>
                <p>Forgot your password? Choose a new one using the button below.</p>
                <p style="text-align: center;"><a href="{url}" class="button">Reset Password</a></p>
                <p style="font-size: 14px; color: #6b7280;">This link is valid for 10 minutes.
                If you didn't forget your password, please ignore this email.</p>
            """)
            text = (
                f"Hi {name},\n\n"
                f"Forgot your password? Reset it here (valid for 10 minutes):\n{url}\n\n"
                "If you didn't forget your password, please ignore this email.\n"
            )
            return html, text

        if template == TEMPLATE_WELCOME:
            dashboard_url = data.get("dashboardURL", "")
            templates_url = data.get("templatesURL", "")
            html = _layout("You're all set!", f"""
                <p>Hi {escape(name)},</p>
                <p>Your email is verified. Start creating content from your dashboard.</p>
                <p style="text-align: center;"><a href="{dashboard_url}" class="button">Go to Dashboard</a></p>
                <p style="text-align: center;"><a href="{templates_url}">Browse Templates</a></p>
            """)
            text = (
                f"Hi {name},\n\n"
                "Your email is verified. Start creating content:\n"
                f"Dashboard: {dashboard_url}\nBrowse templates: {templates_url}\n"
            )
            return html, text

        return (
            f"<h1>Email Template</h1><p>Template \"{template}\" not found.</p>",
            f"Email template \"{template}\" not found.",
        )


def get_email_service(request: Request) -> EmailService:
    """Dependency: the service built at app start (tests swap in a fake)"""
    return request.app.state.email_service
