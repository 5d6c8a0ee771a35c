"""Shared test fixtures and configuration."""

from __future__ import annotations

import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

os.environ.setdefault("TASKMINDER_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("TASKMINDER_LOG_LEVEL", "WARNING")

from taskminder.config import Settings
from taskminder.database import create_tables, make_engine
from taskminder.modules.storage.models import AppSettings
from taskminder.modules.storage.service import StorageService

from helpers import MONDAY, FrozenClock, RecordingNotifier, at


@pytest.fixture
def settings() -> Settings:
    """Return test settings."""
    return Settings(
        taskminder_env="test",
        database_url="sqlite+aiosqlite:///:memory:",
        taskminder_log_level="WARNING",
        _env_file=None,
    )


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory over a fresh in-memory database."""
    engine = make_engine("sqlite+aiosqlite:///:memory:")
    await create_tables(engine)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def storage(session_factory) -> StorageService:
    """Storage over the in-memory database with default preferences."""
    return StorageService(session_factory, default_settings=AppSettings())


@pytest.fixture
def clock() -> FrozenClock:
    """Monday 2026-10-19 07:00 UTC."""
    return FrozenClock(at(MONDAY, 7))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
