"""Transactional email via Resend."""

import asyncio
import logging

import resend

from ttrplobby.settings import get_settings

logger = logging.getLogger(__name__)


async def _send(to: str, subject: str, html: str) -> None:
    settings = get_settings()
    if not settings.resend_enabled:
        logger.info(f"Email sending disabled, skipping '{subject}' to {to}")
        return

    resend.api_key = settings.resend_api_key
    params = {
        "from": settings.email_from,
        "to": [to],
        "subject": subject,
        "html": html,
    }
    # The Resend SDK is synchronous
    await asyncio.to_thread(resend.Emails.send, params)
    logger.info(f"Sent '{subject}' email to {to}")


async def send_verification_email(email: str, token: str) -> None:
    """Send the account verification link."""
    url = f"{get_settings().frontend_url}/verify?token={token}"
    await _send(
        email,
        "Verify your ttrplobby account",
        f'<p>Welcome to ttrplobby!</p><p><a href="{url}">Verify your email</a></p>',
    )


async def send_password_reset_email(email: str, token: str) -> None:
    """Send the password reset link."""
    url = f"{get_settings().frontend_url}/reset-password?token={token}"
    await _send(
        email,
        "Reset your ttrplobby password",
        f'<p>Someone asked to reset your password.</p><p><a href="{url}">Choose a new one</a></p>'
        "<p>If this wasn't you, ignore this email.</p>",
    )
