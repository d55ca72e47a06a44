# journeygen/services/pipeline.py
"""
The two generation intents.

create:  context -> journal prompt -> model -> repair/validate -> persist
report:  context -> report prompt (journal + answers) -> model -> raw text

Nothing is persisted until the generated journal has validated.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from journeygen.llm_client import GenerationClient
from journeygen.models import AdminUser, Client, Journal
from journeygen.services.context import aggregate_context
from journeygen.services.prompts import compose_journal_prompt, compose_report_prompt
from journeygen.services.repair import build_journal
from journeygen.settings.config import settings

logger = logging.getLogger(__name__)


async def create_journal(
    db: AsyncSession,
    generator: GenerationClient,
    *,
    owner: AdminUser,
    client: Client,
    topic: str,
    background: Optional[str] = None,
    booking_link: Optional[str] = None,
) -> Journal:
    context = await aggregate_context(db, client, background)
    logger.info(
        "Generating journal topic=%r client=%s context=%s docs=%d",
        topic, client.id, context.source, len(context.documents),
    )
    prompt = compose_journal_prompt(context, topic)

    raw = await generator.complete(
        prompt.system,
        prompt.user,
        model=settings.JOURNAL_MODEL,
        max_tokens=settings.JOURNAL_MAX_TOKENS,
    )
    data = build_journal(raw)

    journal = Journal(
        topic=topic,
        title=data["title"],
        description=data["description"],
        table_of_contents=data["tableOfContents"],
        booking_link=booking_link or "",
        owner_id=owner.id,
        client_id=client.id,
        responses=[],
    )
    db.add(journal)
    await db.commit()
    await db.refresh(journal)
    logger.info("Journal %s created for client %s (%d sections)", journal.id, client.id, len(data["tableOfContents"]))
    return journal


async def generate_report(
    db: AsyncSession,
    generator: GenerationClient,
    *,
    journal: Journal,
    client: Client,
    responses: Optional[Sequence] = None,
) -> str:
    """Free-text report; uses the stored answers when none are supplied."""
    answers = responses if responses is not None else (journal.responses or [])
    context = await aggregate_context(db, client)
    prompt = compose_report_prompt(context, journal, answers)
    logger.info("Generating report for journal %s context=%s", journal.id, context.source)
    return await generator.complete(
        prompt.system,
        prompt.user,
        model=settings.REPORT_MODEL,
        max_tokens=settings.REPORT_MAX_TOKENS,
        temperature=settings.REPORT_TEMPERATURE,
    )


__all__ = ["create_journal", "generate_report"]
