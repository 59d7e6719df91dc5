from __future__ import annotations

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from signalpm.auth import AuthContext, load_user
from signalpm.docstore import DocumentStore
from signalpm.models import Base
from signalpm.services import Workspace

# ---------------------------------------------------------------------------
# Fixtures: in-memory SQLite document store
# ---------------------------------------------------------------------------


@pytest.fixture()
def engine():
    """In-memory database shared across every session via StaticPool."""
    eng = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    return eng


@pytest.fixture()
def docs(engine) -> DocumentStore:
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return DocumentStore(SessionLocal)


def make_user(docs: DocumentStore, uid: str, role: str) -> AuthContext:
    docs.set("users", uid, {"email": f"{uid}@example.com", "display_name": uid.title(), "role": role})
    return AuthContext(load_user(docs, uid))


@pytest.fixture()
def cpo(docs) -> AuthContext:
    return make_user(docs, "ceo", "cpo")


@pytest.fixture()
def team(docs) -> AuthContext:
    return make_user(docs, "dana", "team")


@pytest.fixture()
def leadership(docs) -> AuthContext:
    return make_user(docs, "board", "leadership")


@pytest.fixture()
def ws(docs, team):
    with Workspace(docs, team) as workspace:
        yield workspace


@pytest.fixture()
def cpo_ws(docs, cpo):
    with Workspace(docs, cpo) as workspace:
        yield workspace
