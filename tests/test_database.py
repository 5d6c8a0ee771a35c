"""Tests for the database module."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import inspect

from taskminder.database import (
    Base,
    close_db,
    get_engine,
    get_session,
    get_session_factory,
    init_db,
)


def _memory_settings() -> MagicMock:
    return MagicMock(
        database_url="sqlite+aiosqlite:///:memory:",
        taskminder_env="test",
        is_sqlite_file=False,
    )


class TestDatabase:
    """Tests for database engine and session management."""

    @pytest.fixture(autouse=True)
    def reset_globals(self):
        """Reset module-level singletons."""
        import taskminder.database as db
        db._engine = None
        db._session_factory = None
        yield
        db._engine = None
        db._session_factory = None

    def test_get_engine_creates_singleton(self) -> None:
        """get_engine returns the same engine instance."""
        with patch("taskminder.database.get_settings", return_value=_memory_settings()):
            engine1 = get_engine()
            engine2 = get_engine()
            assert engine1 is engine2

    def test_get_engine_creates_data_dir_for_sqlite_file(self) -> None:
        """An on-disk SQLite URL gets its data directory created."""
        settings = _memory_settings()
        settings.is_sqlite_file = True
        with patch("taskminder.database.get_settings", return_value=settings):
            get_engine()
        settings.data_dir.mkdir.assert_called_once_with(parents=True, exist_ok=True)

    def test_get_engine_skips_data_dir_in_memory(self) -> None:
        settings = _memory_settings()
        with patch("taskminder.database.get_settings", return_value=settings):
            get_engine()
        settings.data_dir.mkdir.assert_not_called()

    def test_get_session_factory_creates_singleton(self) -> None:
        """get_session_factory returns the same factory."""
        with patch("taskminder.database.get_settings", return_value=_memory_settings()):
            f1 = get_session_factory()
            f2 = get_session_factory()
            assert f1 is f2

    @pytest.mark.asyncio
    async def test_init_db_creates_tables(self) -> None:
        """init_db creates the task, execution and settings tables."""
        with patch("taskminder.database.get_settings", return_value=_memory_settings()):
            await init_db()
            async with get_engine().connect() as conn:
                tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
            await close_db()
        assert {"tasks", "task_executions", "app_settings"} <= set(tables)

    @pytest.mark.asyncio
    async def test_close_db(self) -> None:
        """close_db disposes engine."""
        with patch("taskminder.database.get_settings", return_value=_memory_settings()):
            get_engine()
            await close_db()
            import taskminder.database as db
            assert db._engine is None
            assert db._session_factory is None

    @pytest.mark.asyncio
    async def test_get_session_rolls_back_on_error(self) -> None:
        """get_session re-raises after rolling back."""
        with patch("taskminder.database.get_settings", return_value=_memory_settings()):
            await init_db()
            with pytest.raises(RuntimeError):
                async with get_session() as session:
                    assert session is not None
                    raise RuntimeError("boom")
            await close_db()

    def test_base_has_naming_convention(self) -> None:
        """Base metadata uses proper naming conventions."""
        assert "pk" in Base.metadata.naming_convention
        assert "fk" in Base.metadata.naming_convention
        assert "uq" in Base.metadata.naming_convention
