"""
Authorization guard.

Credentials arrive as ``Authorization: Basic base64(identity:passphrase)``;
``Bearer <same base64>`` is accepted and normalized to Basic first. The
identity resolves, once per request, to either the single administrator or
one client. Every journal-scoped operation then checks ownership against that
identity; the administrator bypasses ownership checks.
"""
from __future__ import annotations

import base64
import binascii
import logging
import secrets
from dataclasses import dataclass
from typing import Optional, Union

from fastapi import Depends, Header
from passlib.hash import bcrypt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from journeygen.background import run_sync
from journeygen.database import get_db
from journeygen.errors import Forbidden, Unauthenticated
from journeygen.models import Client, Journal
from journeygen.settings.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Administrator:
    username: str

    is_admin = True


@dataclass(frozen=True)
class ClientIdentity:
    client_id: int
    email: str

    is_admin = False


Identity = Union[Administrator, ClientIdentity]


# -------------------------
# Passwords / tokens
# -------------------------
def hash_password(plain: str) -> str:
    return bcrypt.hash(plain)


def verify_password(plain: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    try:
        return bcrypt.verify(plain, hashed)
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


def encode_credentials(identity: str, passphrase: str) -> str:
    """base64(identity:passphrase); the login token clients send back as Bearer."""
    return base64.b64encode(f"{identity}:{passphrase}".encode("utf-8")).decode("ascii")


# -------------------------
# Header handling
# -------------------------
def normalize_authorization(header: Optional[str]) -> str:
    """Rewrite 'Bearer <b64>' to 'Basic <b64>' so only one framing is inspected."""
    header = (header or "").strip()
    if header.startswith("Bearer "):
        return "Basic " + header[len("Bearer "):].strip()
    return header


def decode_credentials(header: Optional[str]) -> tuple[str, str]:
    header = normalize_authorization(header)
    if not header.startswith("Basic "):
        raise Unauthenticated("Missing Authorization header")
    token = header[len("Basic "):].strip()
    try:
        decoded = base64.b64decode(token, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        raise Unauthenticated("Invalid Authorization header")
    if ":" not in decoded:
        raise Unauthenticated("Invalid Authorization header")
    identity, passphrase = decoded.split(":", 1)
    return identity, passphrase


def _is_admin(identity: str, passphrase: str) -> bool:
    if not settings.ADMIN_PASSWORD:
        return False
    same_user = secrets.compare_digest(identity.encode("utf-8"), settings.ADMIN_USERNAME.encode("utf-8"))
    same_pass = secrets.compare_digest(passphrase.encode("utf-8"), settings.ADMIN_PASSWORD.encode("utf-8"))
    return same_user and same_pass


async def find_client_by_email(db: AsyncSession, email: str) -> Optional[Client]:
    return (
        await db.execute(select(Client).where(Client.email == email.strip().lower()))
    ).scalars().first()


async def authenticate_client(db: AsyncSession, email: str, password: str) -> Optional[Client]:
    """The active client owning these credentials, or None."""
    client = await find_client_by_email(db, email)
    if not client or not client.is_active:
        return None
    if not await run_sync(verify_password, password, client.password_hash):
        return None
    return client


async def resolve_identity(db: AsyncSession, header: Optional[str]) -> Identity:
    identity, passphrase = decode_credentials(header)

    if _is_admin(identity, passphrase):
        return Administrator(username=identity)

    if "@" not in identity:
        raise Forbidden("Invalid credentials")

    client = await authenticate_client(db, identity, passphrase)
    if not client:
        raise Forbidden("Invalid credentials")
    return ClientIdentity(client_id=client.id, email=client.email)


# -------------------------
# FastAPI dependencies
# -------------------------
async def current_identity(
    authorization: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> Identity:
    return await resolve_identity(db, authorization)


async def require_admin(identity: Identity = Depends(current_identity)) -> Administrator:
    if not isinstance(identity, Administrator):
        raise Forbidden("Admin access required")
    return identity


# -------------------------
# Resource checks
# -------------------------
def authorize_client_scope(identity: Identity, client_id: int) -> None:
    if isinstance(identity, Administrator):
        return
    if identity.client_id != client_id:
        raise Forbidden()


def authorize_journal(identity: Identity, journal: Journal) -> None:
    authorize_client_scope(identity, journal.client_id)


__all__ = [
    "Administrator",
    "ClientIdentity",
    "Identity",
    "authenticate_client",
    "authorize_client_scope",
    "authorize_journal",
    "current_identity",
    "decode_credentials",
    "encode_credentials",
    "find_client_by_email",
    "hash_password",
    "normalize_authorization",
    "require_admin",
    "resolve_identity",
    "verify_password",
]
