from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from journeygen.auth import (
    Administrator,
    authenticate_client,
    encode_credentials,
    find_client_by_email,
    require_admin,
)
from journeygen.database import get_db
from journeygen.errors import Forbidden, NotFound, ValidationError
from journeygen.models import Client, ClientFile, ClientNote, Gender
from journeygen.schemas import (
    ClientNoteCreate,
    ClientRead,
    ClientUpdate,
    LoginRequest,
    LoginResponse,
    SetPasswordRequest,
    SuccessRead,
)
from journeygen.services.invite import activate_client, dispatch_invite, issue_invite
from journeygen.services.storage import delete_upload, save_upload

router = APIRouter(prefix="/api/clients", tags=["clients"])
logger = logging.getLogger(__name__)

_email = TypeAdapter(EmailStr)


async def load_client(db: AsyncSession, client_id: int) -> Client:
    client = (
        await db.execute(
            select(Client)
            .options(selectinload(Client.files), selectinload(Client.notes))
            .where(Client.id == client_id)
            .execution_options(populate_existing=True)
        )
    ).scalars().first()
    if not client:
        raise NotFound("Client not found.")
    return client


def _clean_email(raw: str) -> str:
    try:
        return str(_email.validate_python((raw or "").strip())).lower()
    except PydanticValidationError:
        raise ValidationError(field="email")


def _parse_gender(raw: Optional[str]) -> Gender:
    if not raw:
        return Gender.other
    try:
        return Gender(raw)
    except ValueError:
        raise ValidationError(field="gender")


def _parse_dob(raw: Optional[str]) -> Optional[date]:
    if not raw:
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        raise ValidationError(field="dateOfBirth")


# -------------------------
# Unauthenticated: login / activation
# -------------------------
@router.post("/login", response_model=LoginResponse)
async def client_login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    email = (payload.email or "").strip()
    if not email or not payload.password:
        raise ValidationError("Email and password required.", field="email")

    client = await find_client_by_email(db, email)
    if not client:
        raise NotFound("No client with that email.")
    if not client.is_active:
        raise Forbidden("Account not activated yet.")
    if not await authenticate_client(db, email, payload.password):
        raise Forbidden("Invalid password.")
    return LoginResponse(token=encode_credentials(client.email, payload.password))


@router.post("/set-password", response_model=SuccessRead)
async def client_set_password(payload: SetPasswordRequest, db: AsyncSession = Depends(get_db)):
    await activate_client(db, payload.token, payload.password, payload.confirm_password)
    return SuccessRead()


# -------------------------
# Admin CRUD
# -------------------------
@router.post("", response_model=ClientRead, status_code=201)
async def create_client(
    first_name: str = Form("", alias="firstName"),
    last_name: str = Form("", alias="lastName"),
    email: str = Form("", alias="email"),
    gender: Optional[str] = Form(None, alias="gender"),
    date_of_birth: Optional[str] = Form(None, alias="dateOfBirth"),
    background: Optional[str] = Form(None, alias="background"),
    file: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
    admin: Administrator = Depends(require_admin),
):
    if not first_name.strip() or not last_name.strip() or not email.strip():
        raise ValidationError("firstName, lastName, and email are required.", field="email")

    client = Client(
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        email=_clean_email(email),
        gender=_parse_gender(gender),
        date_of_birth=_parse_dob(date_of_birth),
        background=background or "",
        is_active=False,
    )
    stored = None
    if file is not None and file.filename:
        stored = await save_upload(file)
        client.files.append(ClientFile(**stored))

    token = issue_invite(client)
    db.add(client)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        if stored:
            await delete_upload(stored["path"])
        raise ValidationError("A client with that email already exists.", field="email")

    dispatch_invite(client, token)
    logger.info("Client %s created by %s; invite issued", client.id, admin.username)
    return await load_client(db, client.id)


@router.get("", response_model=list[ClientRead])
async def list_clients(
    db: AsyncSession = Depends(get_db),
    admin: Administrator = Depends(require_admin),
):
    rows = await db.execute(
        select(Client)
        .options(selectinload(Client.files), selectinload(Client.notes))
        .order_by(Client.last_name.asc(), Client.first_name.asc())
    )
    return rows.scalars().all()


@router.get("/{client_id}", response_model=ClientRead)
async def get_client(
    client_id: int,
    db: AsyncSession = Depends(get_db),
    admin: Administrator = Depends(require_admin),
):
    return await load_client(db, client_id)


@router.put("/{client_id}", response_model=ClientRead)
async def update_client(
    client_id: int,
    payload: ClientUpdate,
    db: AsyncSession = Depends(get_db),
    admin: Administrator = Depends(require_admin),
):
    client = await load_client(db, client_id)
    updates = payload.model_dump(exclude_unset=True)
    for key in ("first_name", "last_name"):
        if key in updates and not (updates[key] or "").strip():
            raise ValidationError(field=key)
    if "email" in updates:
        updates["email"] = _clean_email(updates["email"])
    if "background" in updates and updates["background"] is None:
        updates["background"] = ""
    if "gender" in updates and updates["gender"] is None:
        updates["gender"] = Gender.other

    for key, value in updates.items():
        setattr(client, key, value)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ValidationError("A client with that email already exists.", field="email")
    return await load_client(db, client_id)


@router.delete("/{client_id}", response_model=SuccessRead)
async def delete_client(
    client_id: int,
    db: AsyncSession = Depends(get_db),
    admin: Administrator = Depends(require_admin),
):
    client = await load_client(db, client_id)
    await db.delete(client)
    await db.commit()
    logger.info("Client %s deleted", client_id)
    return SuccessRead()


@router.post("/{client_id}/notes", response_model=ClientRead, status_code=201)
async def add_client_note(
    client_id: int,
    payload: ClientNoteCreate,
    db: AsyncSession = Depends(get_db),
    admin: Administrator = Depends(require_admin),
):
    client = await load_client(db, client_id)
    if not payload.body.strip():
        raise ValidationError(field="body")
    db.add(ClientNote(client_id=client.id, body=payload.body.strip()))
    await db.commit()
    return await load_client(db, client_id)


@router.post("/{client_id}/invite", response_model=SuccessRead)
async def reissue_invite(
    client_id: int,
    db: AsyncSession = Depends(get_db),
    admin: Administrator = Depends(require_admin),
):
    client = await load_client(db, client_id)
    if client.is_active:
        raise ValidationError("Client account is already active.", field="clientId")
    token = issue_invite(client)
    await db.commit()
    dispatch_invite(client, token)
    return SuccessRead()
