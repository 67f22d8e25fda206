import asyncio
import logging
from pathlib import Path
from typing import Optional, Dict, Any
from urllib.parse import quote

import jinja2
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from ..config import get_settings

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"
CLINIC_INVITE_SUBJECT = "Your clinic has been approved – set your password"


def build_set_password_url(token: str, base_url: Optional[str] = None) -> str:
    """Link to the set-password screen. Works for web URLs and app deep links (mindfulkids://)."""
    settings = get_settings()
    base = base_url or settings.clinic_invite_base_url or settings.public_base_url
    if not base.endswith("://"):
        base = base.rstrip("/") + "/"
    return f"{base}set-password?token={quote(token, safe='')}"


class EmailService:
    def __init__(self, api_key: Optional[str] = None, sender_email: Optional[str] = None):
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.sendgrid_api_key
        self.sender_email = sender_email or settings.sender_email
        self.enabled = bool(self.api_key)
        self._client = None

        self.template_env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=jinja2.select_autoescape(["html"]),
        )

    @property
    def client(self) -> SendGridAPIClient:
        if self._client is None:
            self._client = SendGridAPIClient(api_key=self.api_key)
        return self._client

    def render(self, template_name: str, context: Dict[str, Any]) -> Dict[str, str]:
        return {
            "html": self.template_env.get_template(f"{template_name}.html").render(**context),
            "text": self.template_env.get_template(f"{template_name}.txt").render(**context),
        }

    async def send_templated_email(self, to_email: str, subject: str, template_name: str,
                                   context: Dict[str, Any]) -> bool:
        """Render and send through SendGrid. Returns False when disabled or rejected."""
        if not self.enabled:
            return False

        body = self.render(template_name, context)
        mail = Mail(
            from_email=self.sender_email,
            to_emails=to_email,
            subject=subject,
            plain_text_content=body["text"],
            html_content=body["html"],
        )
        try:
            response = await asyncio.to_thread(self.client.send, mail)
        except Exception as e:
            # caller falls back to the manual link
            logger.error(f"SendGrid send to {to_email} failed: {e}")
            return False

        if response.status_code in (200, 202):
            logger.info(f"Email '{template_name}' sent to {to_email}")
            return True
        logger.error(f"SendGrid error for {to_email}: {response.status_code}")
        return False

    async def send_clinic_approval_invite(self, to_email: str, clinic_name: str, set_password_url: str) -> Dict[str, Any]:
        """Returns {"sent": True} or {"sent": False, "link": url} for manual delivery."""
        context = {
            "clinic_name": clinic_name,
            "set_password_url": set_password_url,
            "expires_days": get_settings().clinic_invite_expires_days,
        }
        if await self.send_templated_email(to_email, CLINIC_INVITE_SUBJECT, "clinic_invite", context):
            return {"sent": True, "link": None}

        if not self.enabled:
            logger.warning(f"Email not configured. Send this clinic invite link to {to_email}: {set_password_url}")
        return {"sent": False, "link": set_password_url}


def get_email_service() -> EmailService:
    return EmailService()
