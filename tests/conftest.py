# tests/conftest.py
from __future__ import annotations

import json
import os
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["MASTER_ENC_KEY"] = "11" * 32
os.environ["API_HMAC_KEY"] = "22" * 32
os.environ["ORACLE_ENABLED"] = "false"

from fastapi import FastAPI
from fastapi.testclient import TestClient
from httpx import Response
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from trap_oracle.api.v1.dependencies import get_session_factory
from trap_oracle.core.security import SIGNATURE_HEADER, sign_body
from trap_oracle.db.session import create_tables, drop_tables
from trap_oracle.main import app as fastapi_app
from trap_oracle.repositories import (
    CursorRepository,
    ProcessedRepository,
    SubmissionRepository,
    UserRepository,
)
from trap_oracle.services.crypto import SecretCipher

TEST_MASTER_KEY = bytes.fromhex("11" * 32)
TEST_HMAC_KEY = bytes.fromhex("22" * 32)


@pytest.fixture()
def engine(tmp_path: Path) -> Iterator[Engine]:
    # File-backed so every repository thread sees committed rows.
    engine = create_engine(
        f"sqlite:///{tmp_path / 'oracle.db'}",
        connect_args={"check_same_thread": False},
    )
    create_tables(bind=engine)
    try:
        yield engine
    finally:
        drop_tables(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> Callable[[], Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def user_repo(session_factory: Callable[[], Session]) -> UserRepository:
    return UserRepository(session_factory)


@pytest.fixture()
def submission_repo(session_factory: Callable[[], Session]) -> SubmissionRepository:
    return SubmissionRepository(session_factory)


@pytest.fixture()
def processed_repo(session_factory: Callable[[], Session]) -> ProcessedRepository:
    return ProcessedRepository(session_factory)


@pytest.fixture()
def cursor_repo(session_factory: Callable[[], Session]) -> CursorRepository:
    return CursorRepository(session_factory)


@pytest.fixture()
def cipher() -> SecretCipher:
    return SecretCipher(TEST_MASTER_KEY)


@pytest.fixture()
def app(session_factory: Callable[[], Session]) -> Iterator[FastAPI]:
    fastapi_app.dependency_overrides[get_session_factory] = lambda: session_factory
    try:
        yield fastapi_app
    finally:
        fastapi_app.dependency_overrides.pop(get_session_factory, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def signed_post(client: TestClient) -> Callable[..., Response]:
    """POST a JSON payload with a valid (or overridden) signature header."""

    def _post(path: str, payload: object, *, signature: str | None = None) -> Response:
        body = json.dumps(payload).encode()
        header = signature if signature is not None else sign_body(TEST_HMAC_KEY, body)
        return client.post(
            path,
            content=body,
            headers={"Content-Type": "application/json", SIGNATURE_HEADER: header},
        )

    return _post
