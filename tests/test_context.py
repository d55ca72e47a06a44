import logging
from datetime import datetime, timedelta, timezone

import pytest

from journeygen.models import KnowledgeDoc
from journeygen.services.context import (
    SOURCE_CALLER,
    SOURCE_DEFAULT,
    SOURCE_KNOWLEDGE,
    SOURCE_NONE,
    TRUNCATION_MARKER,
    aggregate_context,
)
from journeygen.services.prompts import compose_journal_prompt
from journeygen.settings.config import settings

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def default_background(tmp_path, monkeypatch):
    path = tmp_path / "Background.txt"
    path.write_text("Coaching practice house style: warm, direct, practical.\n", encoding="utf-8")
    monkeypatch.setattr(settings, "DEFAULT_BACKGROUND_PATH", path)
    return "Coaching practice house style: warm, direct, practical."


@pytest.fixture
def add_doc(db):
    async def _add(name, text, uploaded_at, filename=None):
        filename = filename or f"{name}.txt"
        if text is not None:
            (settings.UPLOAD_DIR / filename).write_text(text, encoding="utf-8")
        doc = KnowledgeDoc(name=name, file_url=f"/uploads/{filename}", uploaded_at=uploaded_at)
        db.add(doc)
        await db.commit()
        return doc

    return _add


@pytest.mark.asyncio
async def test_default_background_used_verbatim_when_nothing_else(db, make_client, default_background):
    client = await make_client()
    ctx = await aggregate_context(db, client, background="")
    assert ctx.source == SOURCE_DEFAULT
    assert ctx.text == default_background

    prompt = compose_journal_prompt(ctx, "Overcoming Procrastination")
    assert default_background in prompt.system
    assert "Overcoming Procrastination" in prompt.user


@pytest.mark.asyncio
async def test_caller_background_beats_default(db, make_client, default_background):
    client = await make_client()
    ctx = await aggregate_context(db, client, background="  Admin notes about this cohort.  ")
    assert ctx.source == SOURCE_CALLER
    assert ctx.text == "Admin notes about this cohort."


@pytest.mark.asyncio
async def test_no_sources_is_not_an_error(db, make_client, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "DEFAULT_BACKGROUND_PATH", tmp_path / "missing.txt")
    client = await make_client(background="Works nights.")
    ctx = await aggregate_context(db, client)
    assert ctx.source == SOURCE_NONE
    assert ctx.text == ""
    assert ctx.client.name == "Jane Doe"
    assert ctx.client.background == "Works nights."


@pytest.mark.asyncio
async def test_most_recent_document_comes_first(db, make_client, add_doc, default_background):
    client = await make_client()
    await add_doc("A", "alpha content", T0)
    await add_doc("B", "bravo content", T0 + timedelta(hours=1))

    ctx = await aggregate_context(db, client, background="ignored when documents exist")
    assert ctx.source == SOURCE_KNOWLEDGE
    assert ctx.documents == ("B", "A")
    assert ctx.text.index("=== B ===") < ctx.text.index("=== A ===")
    assert "ignored when documents exist" not in ctx.text
    assert default_background not in ctx.text


@pytest.mark.asyncio
async def test_long_documents_are_truncated(db, make_client, add_doc, monkeypatch):
    monkeypatch.setattr(settings, "KNOWLEDGE_MAX_CHARS_PER_DOC", 50)
    client = await make_client()
    await add_doc("Long", "x" * 120, T0)

    ctx = await aggregate_context(db, client)
    assert ("x" * 50) in ctx.text
    assert ("x" * 51) not in ctx.text
    assert TRUNCATION_MARKER in ctx.text


@pytest.mark.asyncio
async def test_unreadable_document_is_skipped_with_warning(db, make_client, add_doc, caplog):
    client = await make_client()
    await add_doc("Missing", None, T0 + timedelta(hours=2), filename="gone.txt")
    await add_doc("Binary", None, T0 + timedelta(hours=1), filename="blob.bin")
    (settings.UPLOAD_DIR / "blob.bin").write_bytes(b"\xff\xfe\x00\x81")
    await add_doc("Good", "usable text", T0)

    with caplog.at_level(logging.WARNING, logger="journeygen.services.context"):
        ctx = await aggregate_context(db, client)

    assert ctx.source == SOURCE_KNOWLEDGE
    assert ctx.documents == ("Good",)
    assert "usable text" in ctx.text
    warnings = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
    assert any("Missing" in w for w in warnings)
    assert any("Binary" in w for w in warnings)


@pytest.mark.asyncio
async def test_all_documents_unreadable_falls_back(db, make_client, add_doc, default_background):
    client = await make_client()
    await add_doc("Missing", None, T0, filename="gone.txt")
    ctx = await aggregate_context(db, client, background="")
    assert ctx.source == SOURCE_DEFAULT
