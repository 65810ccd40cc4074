"""Общие фикстуры тестов движка синхронизации артефактов."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from app.core.db import init_models, make_session_factory
from app.domains.artifacts.entities import ArtifactKind, Version
from app.domains.artifacts.versions import VersionStore
from app.infrastructure.repositories.version_repository import SessionScopedVersionRepository

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_version(document_id: str = "doc-1", offset: int = 0, content: str = "", **fields) -> Version:
    return Version(
        document_id=document_id,
        created_at=BASE_TIME + timedelta(minutes=offset),
        title=fields.get("title", "Intro"),
        kind=fields.get("kind", ArtifactKind.TEXT),
        content=content or f"content {offset}",
        author_id=fields.get("author_id", "user-1"),
    )


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'artifacts.db'}"


@pytest.fixture
async def engine(database_url):
    engine = create_async_engine(database_url, poolclass=NullPool)
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def repository(session_factory):
    return SessionScopedVersionRepository(session_factory)


@pytest.fixture
def store(repository):
    return VersionStore(repository)
