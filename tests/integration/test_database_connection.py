"""
Integration tests for the Database manager.
"""

import pytest

from timebill.database.connection import Database, normalize_database_url
from timebill.database.exceptions import DatabaseConnectionError


class TestNormalizeUrl:
    """Driver rewriting for PostgreSQL URLs."""

    def test_postgres_scheme(self):
        assert normalize_database_url("postgres://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"

    def test_postgresql_scheme(self):
        assert normalize_database_url("postgresql://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"

    def test_sqlite_untouched(self):
        assert normalize_database_url("sqlite+aiosqlite:///:memory:") == "sqlite+aiosqlite:///:memory:"


class TestDatabase:
    """Lifecycle and health."""

    @pytest.mark.asyncio
    async def test_health_check(self, db):
        health = await db.health_check()
        assert health["status"] == "healthy"
        assert health["dialect"] == "sqlite"

    @pytest.mark.asyncio
    async def test_session_rolls_back_on_error(self, db, repos, client):
        with pytest.raises(RuntimeError):
            async with db.session() as session:
                c = await session.get(type(client), client.id)
                c.name = "Renamed"
                await session.flush()
                raise RuntimeError("boom")

        reloaded = await repos.clients.get("user-1", client.id)
        assert reloaded.name == "Acme Fencing"

    @pytest.mark.asyncio
    async def test_session_without_url_fails(self, monkeypatch):
        from config import settings

        monkeypatch.setattr(settings, "database_url", "")
        database = Database()
        with pytest.raises(DatabaseConnectionError):
            async with database.session():
                pass
