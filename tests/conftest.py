import os

# Settings are read at import time; point them at throwaway values before the app loads.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator, Callable, Dict, Optional
from uuid import UUID, uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.core.models  # noqa: F401
from app.api.v1.fees import service as fee_service
from app.api.v1.fees.schemas import FeeCreate
from app.auth.security import create_access_token
from app.db.session import Base, get_db
from app.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test; the FastAPI dependency shares this session."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def school_id() -> UUID:
    return uuid4()


@pytest.fixture()
def other_school_id() -> UUID:
    return uuid4()


@pytest.fixture()
def student_id() -> UUID:
    return uuid4()


@pytest.fixture()
def make_headers() -> Callable[..., Dict[str, str]]:
    def _make(
        school: UUID,
        role: str = "ADMIN",
        permissions: Optional[Dict[str, Dict[str, bool]]] = None,
    ) -> Dict[str, str]:
        token = create_access_token(
            subject={
                "sub": str(uuid4()),
                "school_id": str(school),
                "role": role,
                "permissions": permissions or {},
            }
        )
        return {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture()
def auth_headers(make_headers, school_id: UUID) -> Dict[str, str]:
    return make_headers(school_id)


@pytest.fixture()
def make_fee(db_session: AsyncSession, school_id: UUID, student_id: UUID):
    """Create a fee through the service; defaults to a 1000.00 tuition fee due 2026-01-01."""

    async def _make(
        total_amount: str = "1000.00",
        due_date: date = date(2026, 1, 1),
        school: Optional[UUID] = None,
        **extra,
    ):
        payload = FeeCreate(
            student_id=extra.pop("student_id", student_id),
            fee_type=extra.pop("fee_type", "tuition"),
            total_amount=Decimal(total_amount),
            due_date=due_date,
            academic_year=extra.pop("academic_year", "2025-2026"),
            **extra,
        )
        return await fee_service.create_fee(db_session, school or school_id, payload)

    return _make
