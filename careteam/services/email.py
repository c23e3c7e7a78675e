"""Invite email dispatch through the Resend HTTP API (real + mock modes)."""

import html
import logging
from dataclasses import dataclass

import httpx

from careteam.core.config import settings

logger = logging.getLogger(__name__)

SEND_TIMEOUT = 10.0


@dataclass(frozen=True)
class InviteEmail:
    to: str
    invite_code: str
    inviter_name: str
    team_name: str
    role: str
    invited_name: str | None = None

    @property
    def invite_url(self) -> str:
        return f"{settings.APP_URL.rstrip('/')}/accept-invite?code={self.invite_code}"


def render_invite_html(email: InviteEmail) -> str:
    greeting = f"Hi {html.escape(email.invited_name)}," if email.invited_name else "Hi,"
    return (
        f"<p>{greeting}</p>"
        f"<p>{html.escape(email.inviter_name)} invited you to join "
        f"<strong>{html.escape(email.team_name)}</strong> as "
        f"{html.escape(email.role.title())}.</p>"
        f'<p><a href="{html.escape(email.invite_url)}">Accept invitation</a></p>'
        f"<p>This invitation expires in {settings.INVITE_EXPIRY_DAYS} days.</p>"
    )


async def send_invite_email(email: InviteEmail) -> bool:
    """Send an invitation. Returns False instead of raising on delivery failure."""
    if settings.EMAIL_MOCK or not settings.RESEND_API_KEY:
        logger.info("Email not configured; would send invite to %s for %s", email.to, email.team_name)
        return False

    payload = {
        "from": settings.EMAIL_FROM,
        "to": [email.to],
        "subject": f"{email.inviter_name} invited you to join {email.team_name}",
        "html": render_invite_html(email),
    }
    try:
        async with httpx.AsyncClient(timeout=SEND_TIMEOUT) as client:
            resp = await client.post(
                settings.RESEND_API_URL,
                json=payload,
                headers={"Authorization": f"Bearer {settings.RESEND_API_KEY}"},
            )
            resp.raise_for_status()
    except httpx.HTTPError:
        logger.warning("Invite email to %s failed", email.to, exc_info=True)
        return False

    return True
