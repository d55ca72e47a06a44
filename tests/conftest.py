import base64
import json
import os

# Settings are read at import time.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ADMIN_USERNAME", "admin")
os.environ.setdefault("ADMIN_PASSWORD", "pass")
os.environ.setdefault("EMAIL_TRANSPORT", "dummy")
os.environ.setdefault("OPENAI_API_KEY", "test-key")

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from journeygen.auth import hash_password
from journeygen.database import Base, get_db
from journeygen.llm_client import get_generation_client
from journeygen.main import app
from journeygen.models import Client, Journal
from journeygen.settings.config import settings
from journeygen.users import get_or_create_admin


def basic(identity: str, passphrase: str) -> dict:
    token = base64.b64encode(f"{identity}:{passphrase}".encode()).decode()
    return {"Authorization": f"Basic {token}"}


ADMIN = basic("admin", "pass")


def sample_section(kind="Section", title="Noticing", n_prompts=5):
    return {
        "entryType": kind,
        "title": title,
        "content": f"{title} explained in a few paragraphs.",
        "prompts": [{"text": f"{title} question {i + 1}?"} for i in range(n_prompts)],
    }


def sample_journal(closing=True, sections=None):
    toc = sections if sections is not None else [
        sample_section("Part", "Understanding Procrastination"),
        sample_section("Section", "Why We Delay"),
    ]
    if closing:
        toc = toc + [sample_section("Closing", "Closing Reflections")]
    return {
        "title": "Overcoming Procrastination",
        "description": "A guided journal for getting unstuck.",
        "tableOfContents": toc,
    }


class FakeGenerator:
    """Stands in for GenerationClient; replies are consumed in order."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def queue(self, *replies):
        self.replies.extend(replies)

    async def complete(self, system, user, *, model, max_tokens, temperature=None):
        self.calls.append(
            {"system": system, "user": user, "model": model, "max_tokens": max_tokens, "temperature": temperature}
        )
        reply = self.replies.pop(0) if self.replies else json.dumps(sample_journal())
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_DIR", tmp_path / "uploads")
    monkeypatch.setattr(settings, "PROMPT_CARDINALITY_POLICY", "pad")
    monkeypatch.setattr(settings, "INVITE_TTL_DAYS", None)
    (tmp_path / "uploads").mkdir()
    return settings


@pytest.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_maker(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
async def api(session_maker, generator):
    async def _get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_generation_client] = lambda: generator
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def make_client(db):
    async def _make(email="jane@example.com", password=None, first="Jane", last="Doe", background=""):
        client = Client(
            first_name=first,
            last_name=last,
            email=email,
            background=background,
            password_hash=hash_password(password) if password else None,
            is_active=bool(password),
            invite_token=None if password else f"invite-{email}",
        )
        db.add(client)
        await db.commit()
        return client

    return _make


@pytest.fixture
def make_journal(db):
    async def _make(client, data=None, responses=None):
        owner = await get_or_create_admin(db)
        data = data or sample_journal()
        journal = Journal(
            topic="Overcoming Procrastination",
            title=data["title"],
            description=data["description"],
            table_of_contents=data["tableOfContents"],
            booking_link="",
            owner_id=owner.id,
            client_id=client.id,
            responses=responses or [],
        )
        db.add(journal)
        await db.commit()
        return journal

    return _make
