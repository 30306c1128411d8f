"""Tests for engine construction and table creation."""
from sqlalchemy import inspect, text

from uptime.database import build_engine, create_tables


class TestBuildEngine:

    async def test_sqlite_file_uses_wal(self, tmp_path) -> None:
        engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'uptime.db'}")
        try:
            async with engine.connect() as conn:
                mode = (await conn.execute(text("PRAGMA journal_mode"))).scalar()
                timeout = (await conn.execute(text("PRAGMA busy_timeout"))).scalar()
        finally:
            await engine.dispose()
        assert mode == "wal"
        assert timeout == 30000

    async def test_create_tables(self, engine) -> None:
        async with engine.connect() as conn:
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        assert {"checks", "check_events", "qos_buckets", "tags", "samples_http", "samples_tcp"} <= set(tables)

    async def test_create_tables_is_repeatable(self, engine) -> None:
        await create_tables(engine)
