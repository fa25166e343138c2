"""
Transactional email through Resend.

Without a Resend API key (local development) the message is logged
instead of sent.
"""

import html
import logging

import resend

from tipline.config import get_settings

logger = logging.getLogger(__name__)


def _otp_email_html(heading: str, intro: str, otp: str) -> str:
    return f"""
<!DOCTYPE html>
<html lang="en">
<body style="font-family: -apple-system, Segoe UI, Roboto, sans-serif; background: #f3f4f6; padding: 24px;">
  <div style="max-width: 480px; margin: 0 auto; background: #fff; border-radius: 8px; padding: 32px;">
    <h1 style="font-size: 20px; margin: 0 0 16px;">{heading}</h1>
    <p style="font-size: 15px; color: #374151;">{intro}</p>
    <p style="font-size: 32px; font-weight: 700; letter-spacing: 8px; text-align: center;">{otp}</p>
    <p style="font-size: 13px; color: #6b7280;">This code expires in 5 minutes.</p>
  </div>
</body>
</html>
""".strip()


def contact_email_html(name: str, email: str, subject: str, message: str) -> str:
    """Render a contact form submission with all user input escaped."""
    body = html.escape(message).replace("\n", "<br>")
    return f"""
<!DOCTYPE html>
<html lang="en">
<body style="font-family: -apple-system, Segoe UI, Roboto, sans-serif; background: #f3f4f6; padding: 24px;">
  <div style="max-width: 560px; margin: 0 auto; background: #fff; border-radius: 8px; padding: 32px;">
    <h1 style="font-size: 20px; margin: 0 0 24px;">Contact form submission</h1>
    <p><strong>Name:</strong> {html.escape(name)}</p>
    <p><strong>Email:</strong> {html.escape(email)}</p>
    <p><strong>Subject:</strong> {html.escape(subject)}</p>
    <hr style="border: none; border-top: 1px solid #e5e7eb;" />
    <p style="white-space: pre-wrap; line-height: 1.5;">{body}</p>
  </div>
</body>
</html>
""".strip()


class EmailService:
    """Email service using the Resend API."""

    def __init__(self):
        self.settings = get_settings()
        if self.settings.resend_api_key:
            resend.api_key = self.settings.resend_api_key

    def send(self, to_email: str, subject: str, html_body: str) -> bool:
        """
        Send a single email.

        Failures are logged and reported through the return value; callers
        run this as a background task after the response is sent.

        Returns:
            True if sent (or logged in development), False on failure.
        """
        if not self.settings.resend_api_key:
            logger.info(f"[DEV] Email to {to_email}: {subject}")
            return True

        try:
            resend.Emails.send({
                "from": self.settings.resend_from_email,
                "to": to_email,
                "subject": subject,
                "html": html_body,
            })
            logger.info(f"Sent email '{subject}' to {to_email}")
            return True
        except Exception as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            return False

    def send_registration_otp(self, to_email: str, otp: str) -> bool:
        if not self.settings.resend_api_key:
            logger.info(f"[DEV] Registration OTP for {to_email}: {otp}")
        return self.send(
            to_email,
            "Verify your email",
            _otp_email_html(
                "Verify your email",
                "Use this code to finish creating your account.",
                otp,
            ),
        )

    def send_password_reset_otp(self, to_email: str, otp: str) -> bool:
        if not self.settings.resend_api_key:
            logger.info(f"[DEV] Password reset OTP for {to_email}: {otp}")
        return self.send(
            to_email,
            "Reset your password",
            _otp_email_html(
                "Reset your password",
                "Use this code to reset your password. Ignore this email if you did not ask for it.",
                otp,
            ),
        )

    def send_contact_to_admin(self, name: str, email: str, subject: str, message: str) -> bool:
        return self.send(
            self.settings.admin_email,
            f"Contact form: {subject}",
            contact_email_html(name, email, subject, message),
        )


# Global service instance
email_service = EmailService()
