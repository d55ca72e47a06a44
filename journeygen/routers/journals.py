from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from journeygen.auth import (
    Administrator,
    Identity,
    authorize_client_scope,
    authorize_journal,
    current_identity,
    require_admin,
)
from journeygen.database import get_db
from journeygen.errors import NotFound, ValidationError
from journeygen.llm_client import GenerationClient, get_generation_client
from journeygen.models import Client, Journal
from journeygen.schemas import (
    JournalCreate,
    JournalRead,
    ReportRead,
    ReportRequest,
    ResponsesPayload,
    SuccessRead,
)
from journeygen.services.pipeline import create_journal, generate_report
from journeygen.users import get_or_create_admin

router = APIRouter(prefix="/api/journals", tags=["journals"])
logger = logging.getLogger(__name__)


async def load_journal(db: AsyncSession, journal_id: int) -> Journal:
    journal = await db.get(Journal, journal_id)
    if not journal:
        raise NotFound("Journal not found.")
    return journal


@router.get("", response_model=list[JournalRead])
async def list_journals(
    db: AsyncSession = Depends(get_db),
    admin: Administrator = Depends(require_admin),
):
    owner = await get_or_create_admin(db, admin.username)
    rows = await db.execute(
        select(Journal).where(Journal.owner_id == owner.id).order_by(Journal.created_at.desc(), Journal.id.desc())
    )
    return rows.scalars().all()


@router.post("", response_model=JournalRead, status_code=201)
async def create_journal_route(
    payload: JournalCreate,
    db: AsyncSession = Depends(get_db),
    admin: Administrator = Depends(require_admin),
    generator: GenerationClient = Depends(get_generation_client),
):
    topic = payload.topic.strip()
    if not topic:
        raise ValidationError(field="topic")

    client = await db.get(Client, payload.client_id)
    if not client:
        raise NotFound("Client not found.")
    owner = await get_or_create_admin(db, admin.username)

    return await create_journal(
        db,
        generator,
        owner=owner,
        client=client,
        topic=topic,
        background=payload.background,
        booking_link=payload.booking_link,
    )


@router.get("/client/{client_id}", response_model=list[JournalRead])
async def list_client_journals(
    client_id: int,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(current_identity),
):
    authorize_client_scope(identity, client_id)
    rows = await db.execute(
        select(Journal).where(Journal.client_id == client_id).order_by(Journal.created_at.desc(), Journal.id.desc())
    )
    return rows.scalars().all()


@router.get("/{journal_id}", response_model=JournalRead)
async def get_journal(
    journal_id: int,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(current_identity),
):
    journal = await load_journal(db, journal_id)
    authorize_journal(identity, journal)
    return journal


@router.put("/{journal_id}/responses", response_model=SuccessRead)
async def save_responses(
    journal_id: int,
    payload: ResponsesPayload,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(current_identity),
):
    journal = await load_journal(db, journal_id)
    authorize_journal(identity, journal)
    journal.responses = payload.responses
    await db.commit()
    return SuccessRead()


@router.post("/{journal_id}/report", response_model=ReportRead)
async def journal_report(
    journal_id: int,
    payload: Optional[ReportRequest] = None,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(current_identity),
    generator: GenerationClient = Depends(get_generation_client),
):
    journal = await load_journal(db, journal_id)
    authorize_journal(identity, journal)

    client = await db.get(Client, journal.client_id)
    if not client:
        raise NotFound("Client not found.")

    responses = payload.responses if payload else None
    report = await generate_report(db, generator, journal=journal, client=client, responses=responses)
    return ReportRead(report=report)
