# journeygen/services/invite.py
import secrets, datetime as dt, smtplib, ssl, logging
from email.message import EmailMessage
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from journeygen.auth import hash_password
from journeygen.background import run_sync, spawn
from journeygen.errors import NotFound, ValidationError
from journeygen.models import Client
from journeygen.settings.config import settings

logger = logging.getLogger(__name__)


def new_token() -> str:
    return secrets.token_urlsafe(32)


def invite_expiry(days: Optional[int] = None) -> Optional[dt.datetime]:
    days = settings.INVITE_TTL_DAYS if days is None else days
    if not days:
        return None
    return dt.datetime.now(dt.timezone.utc) + dt.timedelta(days=days)


def invite_link(token: str) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}/set-password?token={token}"


def render_invite_email(first_name: str, link: str):
    subject = "Welcome! Please set your password"
    text = (
        f"Hi {first_name},\n\n"
        "An account was created for you on JourneyGen. Please click the link below "
        "to choose your password and activate your account:\n\n"
        f"{link}\n\n"
        "If you did not expect this, you can ignore this email.\n\n"
        "Thanks,\nThe JourneyGen Team\n"
    )
    html = f"""
    <h2>Welcome to JourneyGen</h2>
    <p>Hi {first_name}, an account was created for you. Click the button below to set your password.</p>
    <p><a href="{link}" style="display:inline-block;padding:12px 18px;border:1px solid #000;border-radius:8px;text-decoration:none;color:#000;">Set your password</a></p>
    <p style="font-size:13px;color:#555">If the button doesn't work, copy and paste this link:<br>{link}</p>
    """
    return subject, text, html


def build_message(to_email: str, subject: str, text_body: str, html_body: Optional[str] = None) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = (settings.SMTP_FROM or settings.SMTP_USERNAME or "").strip()
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(text_body or "")
    if html_body:
        msg.add_alternative(html_body, subtype="html")
    return msg


def _smtp_connection() -> smtplib.SMTP:
    if settings.SMTP_USE_SSL:
        return smtplib.SMTP_SSL(
            settings.SMTP_HOST, settings.SMTP_PORT, context=ssl.create_default_context(), timeout=30
        )
    conn = smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30)
    if settings.SMTP_USE_TLS:
        conn.starttls(context=ssl.create_default_context())
    return conn


def send_email(to_email: str, subject: str, text_body: str, html_body: Optional[str] = None) -> bool:
    """Deliver one message; False (logged) when SMTP fails. The dummy transport only logs."""
    if settings.EMAIL_TRANSPORT == "dummy":
        logger.info("Email not sent (dummy transport) to=%s subject=%r\n%s", to_email, subject, text_body)
        return True

    msg = build_message(to_email, subject, text_body, html_body)
    try:
        with _smtp_connection() as s:
            if settings.SMTP_USERNAME:
                s.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD or "")
            s.send_message(msg)
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error("SMTP error sending to %s: %s", to_email, e)
        return False


def issue_invite(client: Client) -> str:
    """Fresh single-use token on the client; caller commits."""
    client.invite_token = new_token()
    client.invite_expires_at = invite_expiry()
    return client.invite_token


async def _deliver_invite(email: str, first_name: str, token: str) -> None:
    subject, text, html = render_invite_email(first_name, invite_link(token))
    sent = await run_sync(send_email, email, subject, text, html)
    if sent:
        logger.info("Invite email sent to %s", email)
    else:
        logger.warning("Invite email to %s was not delivered", email)


def dispatch_invite(client: Client, token: str):
    """Out-of-band notification; the request does not wait on SMTP."""
    return spawn(_deliver_invite(client.email, client.first_name, token), name=f"invite:{client.id}")


def _expired(client: Client) -> bool:
    exp = client.invite_expires_at
    if exp is None:
        return False
    if exp.tzinfo is None:
        exp = exp.replace(tzinfo=dt.timezone.utc)
    return exp < dt.datetime.now(dt.timezone.utc)


async def activate_client(db: AsyncSession, token: str, password: str, confirm_password: str) -> Client:
    """
    Invited -> Active, exactly once: store the hash, flip is_active, clear the token.
    """
    if not token:
        raise ValidationError(field="token")
    if not password or not confirm_password:
        raise ValidationError("All fields required.", field="password")
    if password != confirm_password:
        raise ValidationError("Passwords do not match.", field="confirmPassword")

    client = (await db.execute(select(Client).where(Client.invite_token == token))).scalars().first()
    if not client or _expired(client):
        raise NotFound("Invalid or expired token.")

    client.password_hash = await run_sync(hash_password, password)
    client.is_active = True
    client.invite_token = None
    client.invite_expires_at = None
    await db.commit()
    logger.info("Client %s activated", client.id)
    return client
