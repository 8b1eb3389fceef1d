from __future__ import annotations

import io
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List

import httpx
import jwt
import pytest
import sqlalchemy as sa

from logistics_hub.common.db_tables import metadata
from logistics_hub.common.json_logger import JsonLogger
from logistics_hub.config import Config

JWT_SECRET = "unit-test-jwt-secret-with-enough-bytes"


def make_token(user_id: str, *, email: str | None = None, expires_in: int = 3600, audience: str = "authenticated") -> str:
    claims: Dict[str, Any] = {"sub": user_id, "aud": audience, "exp": int(time.time()) + expires_in}
    if email:
        claims["email"] = email
    return jwt.encode(claims, JWT_SECRET, algorithm="HS256")


def auth_headers(user_id: str, **kwargs: Any) -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, **kwargs)}"}


def sync_url(database_url: str) -> str:
    return database_url.replace("+aiosqlite", "")


def seed(database_url: str, table: sa.Table, rows: Iterable[Dict[str, Any]]) -> None:
    engine = sa.create_engine(sync_url(database_url))
    with engine.begin() as connection:
        for row in rows:
            connection.execute(table.insert().values(**row))
    engine.dispose()


def fetch_all(database_url: str, table: sa.Table) -> List[Dict[str, Any]]:
    engine = sa.create_engine(sync_url(database_url))
    with engine.connect() as connection:
        rows = [dict(row) for row in connection.execute(sa.select(table)).mappings()]
    engine.dispose()
    return rows


class VendorStub:
    """Records vendor calls and answers them from ``routes``."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.routes: Dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}

    def add(self, method: str, path: str, status_code: int = 200, json: Any = None) -> None:
        self.routes[(method.upper(), path)] = lambda request: httpx.Response(status_code, json=json)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"errors": [{"detail": f"no stub for {request.url.path}"}]})
        return route(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [req for req in self.requests if req.method == method and req.url.path == path]


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    url = f"sqlite+aiosqlite:///{tmp_path / 'hub.db'}"
    engine = sa.create_engine(sync_url(url))
    metadata.create_all(engine)
    engine.dispose()
    return url


@pytest.fixture
def config(tmp_path: Path, database_url: str) -> Config:
    return Config(
        database_url=database_url,
        supabase_jwt_secret=JWT_SECRET,
        reports_root=str(tmp_path / "reports"),
        storage_root=str(tmp_path / "storage"),
        storage_public_url="https://cdn.example.test/storage/v1/object/public",
        mapbox_public_token="pk.test-token",
        paymongo_secret_key="sk_test_123",
        paymongo_webhook_secret="whsk_test_secret",
        paymongo_base_url="https://api.paymongo.test/v1",
        lalamove_api_key="pk_test_lalamove",
        lalamove_api_secret="sk_test_lalamove",
        lalamove_base_url="https://rest.lalamove.test",
    )


@pytest.fixture
def vendor() -> VendorStub:
    return VendorStub()


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def logger(log_stream) -> JsonLogger:
    json_logger = JsonLogger(run_id="test-run", stream=log_stream, log_file_path=None)
    yield json_logger
    json_logger.close()
