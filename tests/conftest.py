import asyncio
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from database.models import Base
from database.seed import seed
from querygate import QueryExecutor, QueryGateway, UserContext, load_catalog, load_role_policies, resolve_guard
from querygate.identity import ClaimsIdentityResolver

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeTranslator:
    """Returns a canned reply (or raises it) and records what it was shown."""

    def __init__(self, reply: Any = None, configured: bool = True):
        self.reply = reply
        self._configured = configured
        self.calls: list[tuple[str, list]] = []

    @property
    def configured(self) -> bool:
        return self._configured

    async def translate(self, question, menu):
        self.calls.append((question, menu))
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


class RecordingStore:
    """In-memory ReadOnlyStore that records every find and returns fixed rows."""

    def __init__(self, rows: list[dict] | None = None, delay: float = 0.0, error: Exception | None = None):
        self.rows = rows or []
        self.delay = delay
        self.error = error
        self.calls: list[dict] = []

    async def find(self, store_id, where, columns, limit):
        self.calls.append({"store_id": store_id, "where": where, "columns": columns, "limit": limit})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return [dict(r) for r in self.rows[:limit]]


@pytest.fixture(scope="session")
def catalog():
    return load_catalog()


@pytest.fixture(scope="session")
def policies(catalog):
    return load_role_policies(known_keys=set(catalog))


@pytest.fixture
def make_guard(catalog, policies):
    def _make(role: str = "superadmin", scope_values: tuple[str, ...] = (), tenant_id: str = "tenant-acme"):
        ctx = UserContext(caller_id="u-test", tenant_id=tenant_id, role=role, scope_values=scope_values)
        return resolve_guard(role, ctx, catalog, policies)
    return _make


@pytest.fixture
def make_gateway(catalog, policies):
    def _make(translator, store, timeout: float = 1.0, identity=None):
        return QueryGateway(
            catalog=catalog,
            policies=policies,
            translator=translator,
            executor=QueryExecutor(store, catalog, timeout=timeout),
            identity=identity or ClaimsIdentityResolver(),
        )
    return _make


# Fresh in-memory database per test, seeded with the two demo tenants
@pytest_asyncio.fixture(scope="function")
async def session_factory():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await seed(factory)
    yield factory
    await engine.dispose()
