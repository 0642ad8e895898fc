"""Tests for invitation notifications."""
from dataclasses import replace
from unittest.mock import MagicMock, patch

import pytest

from core.config import Settings
from services.notification_service import (
    InvitationPayload,
    LoggingInvitationSender,
    SmtpInvitationSender,
    build_invite_url,
    get_invitation_sender,
    render_body,
    render_subject,
)


def _settings(**smtp: str) -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite:///./unused.db",
        DEV_MODE="false",
        **smtp,
    )


@pytest.fixture
def payload() -> InvitationPayload:
    return InvitationPayload(
        to="bob@example.com",
        invited_by_email="alice@example.com",
        organization_name="Acme",
        workspace_name="Research",
        role="member",
        invite_url="https://app.example.com/invite/abc123",
    )


def test__build_invite_url__strips_trailing_slash() -> None:
    assert build_invite_url("https://app.example.com/", "tok") == "https://app.example.com/invite/tok"


def test__render_subject_and_body(payload: InvitationPayload) -> None:
    assert render_subject(payload) == "You're invited to join Acme - Research"

    body = render_body(payload)
    assert "alice@example.com invited you to join the Research workspace in Acme as member" in body
    assert payload.invite_url in body


def test__render_subject__organization_only(payload: InvitationPayload) -> None:
    org_only = replace(payload, workspace_name=None)

    assert render_subject(org_only) == "You're invited to join Acme"
    assert "invited you to join Acme as member" in render_body(org_only)


def test__get_invitation_sender__selects_by_configuration() -> None:
    assert isinstance(get_invitation_sender(_settings()), LoggingInvitationSender)

    configured = _settings(SMTP_HOST="smtp.example.com", SMTP_FROM="noreply@example.com")
    assert isinstance(get_invitation_sender(configured), SmtpInvitationSender)


async def test__logging_sender__logs_link(
    payload: InvitationPayload,
    caplog: pytest.LogCaptureFixture,
) -> None:
    with caplog.at_level("INFO", logger="services.notification_service"):
        await LoggingInvitationSender().send(payload)

    assert payload.invite_url in caplog.text


async def test__smtp_sender__sends_message(payload: InvitationPayload) -> None:
    settings = _settings(
        SMTP_HOST="smtp.example.com",
        SMTP_PORT="2525",
        SMTP_FROM="noreply@example.com",
        SMTP_USER="mailer",
        SMTP_PASSWORD="secret",
    )
    smtp = MagicMock()

    with patch("services.notification_service.smtplib.SMTP") as smtp_cls:
        smtp_cls.return_value.__enter__.return_value = smtp
        await SmtpInvitationSender(settings).send(payload)

    smtp_cls.assert_called_once_with("smtp.example.com", 2525, timeout=10)
    smtp.starttls.assert_called_once()
    smtp.login.assert_called_once_with("mailer", "secret")
    message = smtp.send_message.call_args.args[0]
    assert message["To"] == "bob@example.com"
    assert message["From"] == "noreply@example.com"
    assert message["Subject"] == "You're invited to join Acme - Research"


async def test__smtp_sender__without_tls_or_login(payload: InvitationPayload) -> None:
    settings = _settings(
        SMTP_HOST="localhost",
        SMTP_FROM="noreply@example.com",
        SMTP_USE_TLS="false",
    )
    smtp = MagicMock()

    with patch("services.notification_service.smtplib.SMTP") as smtp_cls:
        smtp_cls.return_value.__enter__.return_value = smtp
        await SmtpInvitationSender(settings).send(payload)

    smtp.starttls.assert_not_called()
    smtp.login.assert_not_called()
    smtp.send_message.assert_called_once()


async def test__smtp_sender__propagates_transport_errors(payload: InvitationPayload) -> None:
    settings = _settings(SMTP_HOST="smtp.example.com", SMTP_FROM="noreply@example.com")

    with (
        patch(
            "services.notification_service.smtplib.SMTP",
            side_effect=ConnectionRefusedError("refused"),
        ),
        pytest.raises(ConnectionRefusedError),
    ):
        await SmtpInvitationSender(settings).send(payload)
