# journeygen/services/context.py
"""
Context aggregation: the background text every generation call is grounded on.

Precedence: knowledge-bank documents (most recent first, each capped) ->
caller-supplied background -> static default background file -> nothing.
The client's own name/background travels alongside as a separate summary.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from journeygen.background import run_sync
from journeygen.models import Client, KnowledgeDoc
from journeygen.services.storage import read_text, url_to_path
from journeygen.settings.config import settings

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "[...truncated]"

SOURCE_KNOWLEDGE = "knowledge"
SOURCE_CALLER = "caller"
SOURCE_DEFAULT = "default"
SOURCE_NONE = "none"


@dataclass(frozen=True)
class ClientSummary:
    name: str
    background: str = ""


@dataclass(frozen=True)
class AggregatedContext:
    text: str
    source: str
    client: ClientSummary
    documents: tuple[str, ...] = ()


def _truncate(text: str, limit: int) -> str:
    if len(text) > limit:
        return text[:limit] + "\n\n" + TRUNCATION_MARKER
    return text


async def knowledge_bank_text(db: AsyncSession, *, limit: Optional[int] = None) -> tuple[str, list[str]]:
    """
    Concatenate every readable KnowledgeDoc under its own header, newest first.
    Unreadable documents are skipped with a warning.
    """
    limit = limit or settings.KNOWLEDGE_MAX_CHARS_PER_DOC
    docs = (
        await db.execute(
            select(KnowledgeDoc).order_by(KnowledgeDoc.uploaded_at.desc(), KnowledgeDoc.id.desc())
        )
    ).scalars().all()

    blocks: list[str] = []
    used: list[str] = []
    for doc in docs:
        try:
            text = await run_sync(read_text, url_to_path(doc.file_url))
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read KnowledgeDoc [%s] %r: %s", doc.id, doc.name, e)
            continue
        text = _truncate(text, limit).strip()
        if not text:
            continue
        blocks.append(f"=== {doc.name} ===\n{text}")
        used.append(doc.name)
    return "\n\n".join(blocks), used


async def _default_background(path: Optional[Path] = None) -> str:
    path = Path(path or settings.DEFAULT_BACKGROUND_PATH)
    try:
        return (await run_sync(read_text, path)).strip()
    except (OSError, UnicodeDecodeError):
        logger.info("No default background at %s; continuing without one.", path)
        return ""


async def aggregate_context(
    db: AsyncSession,
    client: Client,
    background: Optional[str] = None,
) -> AggregatedContext:
    summary = ClientSummary(name=client.full_name, background=(client.background or "").strip())

    kb_text, used = await knowledge_bank_text(db)
    if kb_text:
        return AggregatedContext(
            text=f"Knowledge Bank Documents:\n\n{kb_text}",
            source=SOURCE_KNOWLEDGE,
            client=summary,
            documents=tuple(used),
        )

    caller = (background or "").strip()
    if caller:
        return AggregatedContext(text=caller, source=SOURCE_CALLER, client=summary)

    fallback = await _default_background()
    if fallback:
        return AggregatedContext(text=fallback, source=SOURCE_DEFAULT, client=summary)

    return AggregatedContext(text="", source=SOURCE_NONE, client=summary)
