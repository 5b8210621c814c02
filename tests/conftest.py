from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from langchain_core.language_models import FakeListChatModel
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from applydesk.api.app import app
from applydesk.api.limiter import limiter
from applydesk.config import settings
from applydesk.db import Base, Job, StructuredResume, User, get_db
from applydesk.db import tables  # noqa: F401
from applydesk.services.accounts import create_user

CRON_SECRET = "cron-test-secret"


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    # No real credentials: every model call fails fast unless a test installs a fake model
    monkeypatch.setattr(settings, "deepseek_api_key", "")
    monkeypatch.setattr(settings, "jsearch_api_key", "")
    monkeypatch.setattr(settings, "tavily_api_key", "")
    monkeypatch.setattr(settings, "database_url", "")
    monkeypatch.setattr(settings, "cron_secret", CRON_SECRET)


@pytest.fixture
def engine(tmp_path: Path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'applydesk.sqlite3'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory: sessionmaker):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory: sessionmaker, monkeypatch: pytest.MonkeyPatch):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    monkeypatch.setattr(limiter, "enabled", False)
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def fake_llm(monkeypatch: pytest.MonkeyPatch) -> Callable[..., FakeListChatModel]:
    """Install a chat model that answers with the given responses in order."""

    def install(*responses: str) -> FakeListChatModel:
        model = FakeListChatModel(responses=list(responses))
        monkeypatch.setattr("applydesk.agents.llm.get_chat_model", lambda **kwargs: model)
        return model

    return install


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    counter = {"n": 0}

    def make(email: str | None = None, password: str | None = "correct-horse", **fields) -> User:
        counter["n"] += 1
        user = create_user(db, email or f"user{counter['n']}@example.com", f"User {counter['n']}", password)
        for key, value in fields.items():
            setattr(user, key, value)
        db.commit()
        return user

    return make


@pytest.fixture
def make_job(db: Session) -> Callable[..., Job]:
    def make(user: User, **fields) -> Job:
        values = {
            "title": "Backend Engineer",
            "company": "Acme",
            "location": "Berlin",
            "description": "Build Python APIs with FastAPI and PostgreSQL on AWS.",
            "requirements": ["Python", "PostgreSQL"],
            "apply_url": "https://boards.greenhouse.io/acme/jobs/1",
        }
        values.update(fields)
        job = Job(user_id=user.id, **values)
        db.add(job)
        db.commit()
        return job

    return make


@pytest.fixture
def make_resume(db: Session) -> Callable[..., StructuredResume]:
    def make(user: User, **fields) -> StructuredResume:
        values = {
            "contact_info": {"fullName": "Ada Lovelace", "email": "ada@example.com"},
            "summary": "Backend developer with a focus on data-heavy services.",
            "experience": [
                {
                    "title": "Software Engineer",
                    "company": "Initech",
                    "achievements": [
                        "Organized the team offsite",
                        "Built Python services on PostgreSQL",
                    ],
                }
            ],
            "education": [{"degree": "BSc", "field": "Mathematics", "institution": "UCL"}],
            "skills": [
                {"name": "Excel", "proficiency": "intermediate"},
                {"name": "Python", "proficiency": "expert"},
                {"name": "PostgreSQL", "proficiency": "advanced"},
            ],
        }
        values.update(fields)
        resume = StructuredResume(user_id=user.id, **values)
        db.add(resume)
        db.commit()
        return resume

    return make