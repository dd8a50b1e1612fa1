from __future__ import annotations

import os
from pathlib import Path
from typing import AsyncIterator, Iterator, cast

from loguru import logger

import pytest
from alembic import command
from alembic.config import Config
from httpx import ASGITransport, AsyncClient
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.types import ASGIApp

# Configure environment for tests before importing the app
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///./test_agora.db")
os.environ.setdefault("JWT_SECRET", "test_secret")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ.setdefault("ACCESS_TOKEN_EXPIRES_MIN", "15")
os.environ.setdefault("REFRESH_TOKEN_EXPIRES_DAYS", "7")
os.environ.setdefault("NONCE_TTL_SECONDS", "300")
os.environ.setdefault("WALLET_CONNECT_RATE_LIMIT_ATTEMPTS", "10")
os.environ.setdefault("LOGIN_RATE_LIMIT_ATTEMPTS", "5")
os.environ.setdefault("ENV", "local")
os.environ.setdefault("CORS_ALLOWED_ORIGINS", '["http://testserver"]')
os.environ.setdefault("LOG_LEVEL", "ERROR")
logger.remove()

from agora.core.database import get_session_factory  # noqa: E402
from agora.core.rate_limiter import login_rate_limiter, wallet_connect_rate_limiter  # noqa: E402
from agora.main import app  # noqa: E402
from agora.models import Nonce, RevokedToken, User, Wallet  # noqa: E402


def _apply_migrations() -> None:
    root_path = Path(__file__).resolve().parents[2]
    alembic_cfg = Config(str(root_path / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(root_path / "agora" / "migrations"))
    command.upgrade(alembic_cfg, "head")


@pytest.fixture(scope="session", autouse=True)
def apply_migrations() -> Iterator[None]:
    db_path = Path("test_agora.db")
    if db_path.exists():
        db_path.unlink()
    _apply_migrations()
    yield
    if db_path.exists():
        db_path.unlink()


@pytest.fixture()
async def client() -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=cast(ASGIApp, app))  # type: ignore[arg-type]
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture()
async def session() -> AsyncIterator[AsyncSession]:
    session_factory = get_session_factory()
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
async def clean_auth_state() -> AsyncIterator[None]:
    """Ensure each test begins with empty auth tables and limiters."""

    session_factory = get_session_factory()
    async with session_factory() as session:
        for model in (RevokedToken, Nonce, Wallet, User):
            await session.execute(delete(model))
        await session.commit()
    await login_rate_limiter.reset()
    await wallet_connect_rate_limiter.reset()
    yield
