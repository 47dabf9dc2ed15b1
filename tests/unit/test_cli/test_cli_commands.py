"""Tests for the outbox-service CLI.

Testing approach:
- Uses Click's CliRunner against the top-level ``cli`` group
- Each test points DATABASE_URL at its own SQLite file and seeds it with
  ``asyncio.run`` before invoking the command (commands run their own loop)
- The broker is replaced with RecordingBroker for ``worker run``
"""

import asyncio
import json
import uuid

import pytest
from click.testing import CliRunner

from outbox_service.cli.main import cli
from outbox_service.infra.database import build_engine, create_schema, create_session_factory
from outbox_service.infra.events.outbox import EventRecordStore, EventStatus
from tests.utils import RecordingBroker, add_records, load_records

# =============================================================================
# Test Fixtures
# =============================================================================


@pytest.fixture
def cli_runner():
    return CliRunner()


def seed(db_url: str, event_types, *, published: int = 0, failures: int = 0):
    """Create the schema and commit records.

    The first ``published`` records are marked published; the rest are
    marked failed ``failures`` times.
    """

    async def _seed():
        engine = build_engine(db_url)
        try:
            await create_schema(engine)
            factory = create_session_factory(engine)
            records = await add_records(factory, event_types)
            store = EventRecordStore()
            async with factory() as session, session.begin():
                for record in records[:published]:
                    await store.mark_published(session, record.id)
                for record in records[published:]:
                    for _ in range(failures):
                        await store.mark_failed(session, record.id)
            return records
        finally:
            await engine.dispose()

    return asyncio.run(_seed())


def stored(db_url: str):
    async def _load():
        engine = build_engine(db_url)
        try:
            return await load_records(create_session_factory(engine))
        finally:
            await engine.dispose()

    return asyncio.run(_load())


# =============================================================================
# db
# =============================================================================


@pytest.mark.unit
class TestDbInit:
    """Tests for `db init`."""

    def test_creates_tables(self, cli_runner, db_url):
        result = cli_runner.invoke(cli, ["db", "init"])

        assert result.exit_code == 0, result.output
        assert "Database ready" in result.output
        assert "event_records" in result.output

    def test_unreachable_database_exits_nonzero(self, cli_runner, tmp_path, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'x.db'}")

        result = cli_runner.invoke(cli, ["db", "init"])

        assert result.exit_code == 1
        assert "Failed to initialize database" in result.output


# =============================================================================
# outbox
# =============================================================================


@pytest.mark.unit
class TestOutboxCommands:
    """Tests for the `outbox` group."""

    def test_status_json(self, cli_runner, db_url, monkeypatch):
        monkeypatch.setenv("OUTBOX_MAX_RETRIES", "2")
        seed(db_url, ["channel.created"] * 4, published=1, failures=2)

        result = cli_runner.invoke(cli, ["outbox", "status", "--format", "json"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {
            "pending": 0,
            "published": 1,
            "failed": 3,
            "exhausted": 3,
        }

    def test_status_table(self, cli_runner, db_url):
        seed(db_url, ["channel.created", "channel.deleted"])

        result = cli_runner.invoke(cli, ["outbox", "status"])

        assert result.exit_code == 0, result.output
        assert "Outbox Status" in result.output
        assert "pending" in result.output

    def test_inspect_lists_aggregate_events(self, cli_runner, db_url):
        first, _ = seed(db_url, ["channel.created", "workspace.created"])

        result = cli_runner.invoke(
            cli,
            ["outbox", "inspect", first.aggregate_type, first.aggregate_id, "--format", "json"],
        )

        assert result.exit_code == 0, result.output
        [row] = json.loads(result.stdout)
        assert row["event_id"] == first.event_id
        assert row["status"] == "pending"
        assert "payload" not in row

    def test_inspect_unknown_aggregate(self, cli_runner, db_url):
        seed(db_url, [])

        result = cli_runner.invoke(cli, ["outbox", "inspect", "channel", "nope"])

        assert result.exit_code == 0, result.output
        assert "No events recorded for channel nope" in result.output

    def test_show_prints_record_with_payload(self, cli_runner, db_url, monkeypatch):
        monkeypatch.setenv("OUTBOX_MAX_RETRIES", "3")
        [record] = seed(db_url, ["channel.created"], failures=1)

        result = cli_runner.invoke(cli, ["outbox", "show", str(record.id)])

        assert result.exit_code == 0, result.output
        row = json.loads(result.stdout)
        assert row["id"] == str(record.id)
        assert row["status"] == "failed"
        assert row["retryable"] is True
        assert row["payload"]["eventId"] == record.event_id

    def test_show_unknown_record_exits_nonzero(self, cli_runner, db_url):
        seed(db_url, [])
        missing = uuid.uuid4()

        result = cli_runner.invoke(cli, ["outbox", "show", str(missing)])

        assert result.exit_code == 1
        assert f"EventRecord with id {missing} not found" in result.output

    def test_failed_lists_exhausted_only(self, cli_runner, db_url, monkeypatch):
        monkeypatch.setenv("OUTBOX_MAX_RETRIES", "3")
        exhausted = seed(db_url, ["channel.created"], failures=3)
        seed(db_url, ["channel.deleted"], failures=1)

        result = cli_runner.invoke(cli, ["outbox", "failed", "--format", "json"])

        assert result.exit_code == 0, result.output
        assert [row["id"] for row in json.loads(result.stdout)] == [str(exhausted[0].id)]

    def test_failed_none(self, cli_runner, db_url):
        seed(db_url, ["channel.created"])

        result = cli_runner.invoke(cli, ["outbox", "failed"])

        assert result.exit_code == 0, result.output
        assert "No exhausted records" in result.output

    def test_cleanup_with_zero_days(self, cli_runner, db_url):
        records = seed(db_url, ["a.b", "a.b", "a.b"], published=2)

        result = cli_runner.invoke(cli, ["outbox", "cleanup", "--days", "0"])

        assert result.exit_code == 0, result.output
        assert "Deleted 2 published record(s)" in result.output
        assert [r.id for r in stored(db_url)] == [records[2].id]


# =============================================================================
# worker
# =============================================================================


@pytest.mark.unit
class TestWorkerRun:
    """Tests for `worker run --once`."""

    def test_once_publishes_pending_and_exits(self, cli_runner, db_url, monkeypatch):
        records = seed(db_url, ["channel.created", "channel.deleted"])
        broker = RecordingBroker()
        monkeypatch.setattr("outbox_service.infra.messaging.BrokerClient", lambda: broker)

        result = cli_runner.invoke(cli, ["worker", "run", "--once"])

        assert result.exit_code == 0, result.output
        assert "Published 2, failed 0" in result.output
        assert broker.event_ids == [r.event_id for r in records]
        assert broker.disconnect_calls == 1
        assert {r.status for r in stored(db_url)} == {EventStatus.PUBLISHED}

    def test_once_counts_failures(self, cli_runner, db_url, monkeypatch):
        seed(db_url, ["channel.created", "channel.deleted"])
        broker = RecordingBroker(fail_routing_keys={"channel.deleted"})
        monkeypatch.setattr("outbox_service.infra.messaging.BrokerClient", lambda: broker)

        result = cli_runner.invoke(cli, ["worker", "run", "--once"])

        assert result.exit_code == 0, result.output
        # The pending batch fails it once, the retry batch once more
        assert "Published 1, failed 2" in result.output
        [failed] = [r for r in stored(db_url) if r.status == EventStatus.FAILED]
        assert failed.failed_attempts == 2

    def test_once_batch_error_exits_nonzero(self, cli_runner, db_url, monkeypatch):
        seed(db_url, ["channel.created"])
        broker = RecordingBroker()
        monkeypatch.setattr("outbox_service.infra.messaging.BrokerClient", lambda: broker)

        async def broken_batch(self):
            raise RuntimeError("lock wait exceeded")

        monkeypatch.setattr(
            "outbox_service.infra.events.outbox.PublisherWorker.process_batch", broken_batch
        )

        result = cli_runner.invoke(cli, ["worker", "run", "--once"])

        assert result.exit_code == 1
        assert "Batch processing failed: lock wait exceeded" in result.output
        assert not isinstance(result.exception, RuntimeError)
        assert broker.disconnect_calls == 1
