"""Invite email dispatch tests (Resend HTTP API stubbed with httpx.MockTransport)."""

import json

import httpx
import pytest

from careteam.core.config import settings
from careteam.services import email as email_service
from careteam.services.email import InviteEmail, render_invite_html, send_invite_email

MESSAGE = InviteEmail(
    to="caregiver@example.com",
    invite_code="ab" * 16,
    inviter_name="Dana <Admin>",
    team_name="Alex's Care Team",
    role="CAREGIVER",
    invited_name="Casey",
)


@pytest.fixture
def live_email(monkeypatch):
    monkeypatch.setattr(settings, "EMAIL_MOCK", False)
    monkeypatch.setattr(settings, "RESEND_API_KEY", "re_test_key")


def _use_transport(monkeypatch, handler) -> None:
    real_client = httpx.AsyncClient

    def client_factory(*args, **kwargs):
        return real_client(*args, transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(email_service.httpx, "AsyncClient", client_factory)


def test_invite_html_escapes_names():
    html = render_invite_html(MESSAGE)
    assert "Dana &lt;Admin&gt;" in html
    assert "Hi Casey," in html
    assert MESSAGE.invite_url in html


@pytest.mark.asyncio
async def test_mock_mode_does_not_send(monkeypatch):
    monkeypatch.setattr(settings, "EMAIL_MOCK", True)
    assert await send_invite_email(MESSAGE) is False


@pytest.mark.asyncio
async def test_sends_through_resend(monkeypatch, live_email):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "email-1"})

    _use_transport(monkeypatch, handler)
    assert await send_invite_email(MESSAGE) is True

    assert len(seen) == 1
    assert seen[0].headers["Authorization"] == "Bearer re_test_key"
    payload = json.loads(seen[0].content)
    assert payload["to"] == ["caregiver@example.com"]
    assert "Alex's Care Team" in payload["subject"]


@pytest.mark.asyncio
async def test_provider_error_reported_not_raised(monkeypatch, live_email):
    _use_transport(monkeypatch, lambda request: httpx.Response(503))
    assert await send_invite_email(MESSAGE) is False
