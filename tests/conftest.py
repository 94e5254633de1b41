"""Test configuration and fixtures."""

from pathlib import Path
from typing import Callable, Dict, Generator, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from infracity.api import app
from infracity.db.base import Base, get_db
from infracity.enums import ComponentType
from infracity.worker.validator import ValidatedComponent, ValidatedEvidence


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Fresh in-memory SQLite database with all tables."""
    from infracity.db import models  # noqa: F401

    test_engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory: sessionmaker) -> Generator[TestClient, None, None]:
    """API client bound to the test database (lifespan is not run)."""

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_tree(tmp_path: Path) -> Callable[[Dict[str, str]], Path]:
    """Build a file tree from {relative_path: content} and return its root."""

    def _make(files: Dict[str, str], root_name: str = "repo") -> Path:
        root = tmp_path / root_name
        root.mkdir(parents=True, exist_ok=True)
        for rel_path, content in files.items():
            path = root / rel_path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return root

    return _make


@pytest.fixture
def make_component() -> Callable[..., ValidatedComponent]:
    """Factory for validated components with a single evidence row."""

    def _make(
        name: str,
        type: ComponentType = ComponentType.LIBRARY,
        confidence: float = 0.9,
        file_path: str = "package.json",
        snippet: str = '"react": "^18.2.0"',
        version: Optional[str] = None,
    ) -> ValidatedComponent:
        return ValidatedComponent(
            name=name,
            type=type,
            confidence=confidence,
            version=version,
            description=f"{name} component",
            evidence=[ValidatedEvidence(file_path=file_path, snippet=snippet)],
        )

    return _make
