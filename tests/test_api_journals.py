import asyncio
import json

import httpx
import pytest
from sqlalchemy import func, select

from conftest import ADMIN, basic, sample_journal
from journeygen.auth import encode_credentials
from journeygen.database import get_db
from journeygen.errors import GenerationUnavailable
from journeygen.llm_client import get_generation_client
from journeygen.main import app
from journeygen.models import Journal
from journeygen.services.prompts import NO_ANSWER
from journeygen.settings.config import settings
from journeygen.users import get_or_create_admin


async def _journal_count(db):
    return (await db.execute(select(func.count()).select_from(Journal))).scalar_one()


@pytest.fixture
async def lenient_api(session_maker, generator):
    """Like ``api`` but lets the app answer unhandled errors instead of re-raising them."""
    async def _get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_generation_client] = lambda: generator
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_create_journal_end_to_end(api, db, make_client, generator):
    client = await make_client(background="Recently promoted.")
    generator.queue(json.dumps(sample_journal(closing=False)))

    r = await api.post(
        "/api/journals",
        json={"topic": "Overcoming Procrastination", "clientId": client.id, "bookingLink": "https://cal.test/x"},
        headers=ADMIN,
    )

    assert r.status_code == 201, r.text
    body = r.json()
    assert body["title"] == "Overcoming Procrastination"
    assert body["clientId"] == client.id
    assert body["bookingLink"] == "https://cal.test/x"
    assert body["responses"] == []
    kinds = [s["entryType"] for s in body["tableOfContents"]]
    assert kinds[-1] == "Closing" and kinds.count("Closing") == 1
    assert all(len(s["prompts"]) == 5 for s in body["tableOfContents"])

    call = generator.calls[0]
    assert call["model"] == settings.JOURNAL_MODEL
    assert call["max_tokens"] == settings.JOURNAL_MAX_TOKENS
    assert call["temperature"] is None
    assert "Client Name: Jane Doe" in call["system"]
    assert '"Overcoming Procrastination"' in call["user"]
    assert await _journal_count(db) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "reply",
    [
        "Sure! Here is your journal: {not json}",
        json.dumps({"title": "t", "description": "d"}),
        GenerationUnavailable("connection refused"),
    ],
)
async def test_generation_failures_persist_nothing(api, db, make_client, generator, reply):
    client = await make_client()
    generator.queue(reply)

    r = await api.post("/api/journals", json={"topic": "Focus", "clientId": client.id}, headers=ADMIN)

    assert r.status_code == 500
    assert r.json() == {"error": "Server error generating content."}
    assert await _journal_count(db) == 0


@pytest.mark.asyncio
async def test_create_journal_validation(api, make_client, generator):
    client = await make_client()
    r = await api.post("/api/journals", json={"topic": "   ", "clientId": client.id}, headers=ADMIN)
    assert r.status_code == 400
    assert "topic" in r.json()["error"]

    r = await api.post("/api/journals", json={"clientId": client.id}, headers=ADMIN)
    assert r.status_code == 400

    r = await api.post("/api/journals", json={"topic": "Focus", "clientId": 999}, headers=ADMIN)
    assert r.status_code == 404
    assert generator.calls == []


@pytest.mark.asyncio
async def test_create_journal_requires_admin(api, make_client):
    await make_client(password="s3cret")
    r = await api.post("/api/journals", json={"topic": "x", "clientId": 1}, headers=basic("jane@example.com", "s3cret"))
    assert r.status_code == 403
    r = await api.post("/api/journals", json={"topic": "x", "clientId": 1})
    assert r.status_code == 401
    assert r.json() == {"error": "Missing Authorization header"}


@pytest.mark.asyncio
async def test_client_can_only_see_own_journals(api, make_client, make_journal):
    jane = await make_client(password="s3cret")
    bob = await make_client(email="bob@example.com", password="hunter2", first="Bob", last="Roe")
    mine = await make_journal(jane)
    theirs = await make_journal(bob)
    jane_auth = basic("jane@example.com", "s3cret")

    r = await api.get(f"/api/journals/{mine.id}", headers=jane_auth)
    assert r.status_code == 200

    r = await api.get(f"/api/journals/{theirs.id}", headers=jane_auth)
    assert r.status_code == 403

    r = await api.get(f"/api/journals/client/{bob.id}", headers=jane_auth)
    assert r.status_code == 403

    r = await api.put(f"/api/journals/{theirs.id}/responses", json={"responses": [["x"]]}, headers=jane_auth)
    assert r.status_code == 403

    r = await api.get(f"/api/journals/client/{jane.id}", headers=jane_auth)
    assert [j["id"] for j in r.json()] == [mine.id]

    r = await api.get(f"/api/journals/{theirs.id}", headers=ADMIN)
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_bad_credentials_are_forbidden(api, make_client, make_journal):
    jane = await make_client(password="s3cret")
    journal = await make_journal(jane)

    r = await api.get(f"/api/journals/{journal.id}", headers=basic("jane@example.com", "wrong"))
    assert r.status_code == 403
    r = await api.get(f"/api/journals/{journal.id}", headers={"Authorization": "Basic %%%"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_login_token_works_as_bearer(api, make_client, make_journal):
    jane = await make_client(password="s3cret")
    journal = await make_journal(jane)

    r = await api.post("/api/clients/login", json={"email": "jane@example.com", "password": "s3cret"})
    assert r.status_code == 200
    token = r.json()["token"]
    assert token == encode_credentials("jane@example.com", "s3cret")

    r = await api.get(f"/api/journals/{journal.id}", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json()["id"] == journal.id


@pytest.mark.asyncio
async def test_save_responses_then_report_uses_stored_answers(api, make_client, make_journal, generator):
    jane = await make_client(password="s3cret")
    journal = await make_journal(jane)
    auth = basic("jane@example.com", "s3cret")
    answers = [["a1", "a2", "a3", "a4", "a5"]]

    r = await api.put(f"/api/journals/{journal.id}/responses", json={"responses": answers}, headers=auth)
    assert r.json() == {"success": True}

    r = await api.get(f"/api/journals/{journal.id}", headers=auth)
    assert r.json()["responses"] == answers

    generator.queue("Jane, you showed real honesty this week.")
    r = await api.post(f"/api/journals/{journal.id}/report", headers=auth)
    assert r.status_code == 200
    assert r.json() == {"report": "Jane, you showed real honesty this week."}

    call = generator.calls[-1]
    assert call["model"] == settings.REPORT_MODEL
    assert call["max_tokens"] == settings.REPORT_MAX_TOKENS
    assert call["temperature"] == settings.REPORT_TEMPERATURE
    assert "Answer 1: a1" in call["user"]
    # sample journal has three sections; only the first was answered
    assert call["user"].count(NO_ANSWER) == 10


@pytest.mark.asyncio
async def test_report_prefers_supplied_answers(api, make_client, make_journal, generator):
    jane = await make_client()
    journal = await make_journal(jane, responses=[["stored"]])
    generator.queue("report")

    r = await api.post(f"/api/journals/{journal.id}/report", json={"responses": [["fresh"]]}, headers=ADMIN)

    assert r.status_code == 200
    assert "Answer 1: fresh" in generator.calls[-1]["user"]
    assert "stored" not in generator.calls[-1]["user"]


@pytest.mark.asyncio
async def test_report_failure_is_generic(api, make_client, make_journal, generator):
    jane = await make_client()
    journal = await make_journal(jane)
    generator.queue(GenerationUnavailable("timeout"))

    r = await api.post(f"/api/journals/{journal.id}/report", headers=ADMIN)
    assert r.status_code == 500
    assert r.json() == {"error": "Server error generating content."}


@pytest.mark.asyncio
async def test_admin_lists_own_journals(api, make_client, make_journal):
    jane = await make_client()
    first = await make_journal(jane)
    second = await make_journal(jane)

    r = await api.get("/api/journals", headers=ADMIN)
    assert r.status_code == 200
    assert {j["id"] for j in r.json()} == {first.id, second.id}

    r = await api.get("/api/journals/12345", headers=ADMIN)
    assert r.status_code == 404
    assert "error" in r.json()


@pytest.mark.asyncio
async def test_unexpected_error_still_renders_json(lenient_api, make_client, make_journal, generator):
    jane = await make_client()
    journal = await make_journal(jane)
    generator.queue(RuntimeError("unexpected"))

    r = await lenient_api.post(f"/api/journals/{journal.id}/report", headers=ADMIN)

    assert r.status_code == 500
    assert r.headers["content-type"].startswith("application/json")
    assert r.json() == {"error": "Server error."}


@pytest.mark.asyncio
async def test_repeated_create_persists_distinct_journals(api, db, make_client):
    client = await make_client()
    await get_or_create_admin(db)
    payload = {"topic": "Overcoming Procrastination", "clientId": client.id}

    first, second = await asyncio.gather(
        api.post("/api/journals", json=payload, headers=ADMIN),
        api.post("/api/journals", json=payload, headers=ADMIN),
    )

    assert first.status_code == second.status_code == 201
    assert first.json()["id"] != second.json()["id"]
    assert await _journal_count(db) == 2
