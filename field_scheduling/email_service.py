"""
Email delivery using Resend
Templates are written in MJML and compiled to HTML before sending
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, EMAIL_REPLY_TO, RESEND_API_KEY

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
        # mjml_to_html returns a mapping with 'html' and 'errors' keys
        if isinstance(result, dict):
            if result.get("errors"):
                logger.warning(f"MJML compilation warnings: {result['errors']}")
            return result.get("html", "")
        return str(getattr(result, "html", result))
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise RuntimeError(f"Failed to compile MJML template: {str(e)}") from e


class EmailNotifier:
    """
    Notifier backed by Resend.

    send_email never raises; callers get {"success": bool, "error": str | None}
    and decide whether a failed delivery matters to them.
    """

    def __init__(self, api_key: Optional[str] = RESEND_API_KEY, from_address: str = EMAIL_FROM_ADDRESS):
        self.api_key = api_key
        self.from_address = from_address

    async def send_email(self, to: Union[str, list[str]], subject: str, html_body: str) -> dict:
        recipients = [to] if isinstance(to, str) else to

        if not self.api_key:
            logger.error("❌ No email service configured - RESEND_API_KEY missing")
            return {"success": False, "error": "Email service not configured"}

        email_data = {
            "from": self.from_address,
            "to": recipients,
            "subject": subject,
            "html": html_body,
        }
        if EMAIL_REPLY_TO:
            email_data["reply_to"] = EMAIL_REPLY_TO

        try:
            logger.info(f"📧 Sending email via Resend to: {recipients}")
            response = resend.Emails.send(email_data)
            logger.info(f"✅ Email sent successfully via Resend: {response}")
            return {"success": True, "error": None}
        except Exception as e:
            logger.error(f"❌ Email send error to {recipients}: {e}")
            return {"success": False, "error": str(e)}


def get_notifier() -> EmailNotifier:
    """FastAPI dependency for the notifier"""
    return EmailNotifier()
