"""Tests for the Database handle: URL handling and transactional scopes."""

import inspect

import pytest
from sqlalchemy import func, select

from inventory_kernel.config import LedgerConfig
from inventory_kernel.db.engine import Database, normalize_database_url
from inventory_kernel.models.location import Location


class TestNormalizeDatabaseUrl:
    def test_postgres_scheme_rewritten(self):
        assert normalize_database_url("postgres://u:p@h/db") == "postgresql://u:p@h/db"

    def test_other_urls_untouched(self):
        assert normalize_database_url("sqlite:///x.db") == "sqlite:///x.db"
        assert normalize_database_url("postgresql://h/db") == "postgresql://h/db"


class TestDatabase:
    def test_pool_recycle_default_matches_config(self):
        default = inspect.signature(Database.from_url).parameters["pool_recycle"].default
        assert default == LedgerConfig().pool_recycle == 3600

    def test_from_config(self, tmp_path):
        config = LedgerConfig(database_url=f"sqlite:///{tmp_path / 'cfg.db'}")
        database = Database.from_config(config)
        try:
            assert database.is_sqlite
            assert not database.is_postgres
        finally:
            database.dispose()

    def test_session_scope_commits(self, db):
        with db.session_scope() as session:
            session.add(Location(name="Committed", location_type="warehouse", is_active=True))

        with db.session_scope() as session:
            names = session.execute(select(Location.name)).scalars().all()
        assert names == ["Committed"]

    def test_session_scope_rolls_back_on_error(self, db):
        with pytest.raises(RuntimeError):
            with db.session_scope() as session:
                session.add(Location(name="Lost", location_type="warehouse", is_active=True))
                session.flush()
                raise RuntimeError("boom")

        with db.session_scope() as session:
            count = session.execute(select(func.count()).select_from(Location)).scalar_one()
        assert count == 0
