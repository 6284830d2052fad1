"""Tests for scheduler export/import and SnapshotStore."""

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from courier.errors import ImportFormatError
from courier.scheduler.engine import MessageScheduler
from courier.scheduler.models import JobKind
from courier.scheduler.snapshot import SnapshotStore


@pytest.fixture
def scheduler(sender, clock) -> MessageScheduler:
    s = MessageScheduler(sender, clock=clock)
    yield s
    s.destroy()


@pytest.fixture
async def store(tmp_path: Path) -> SnapshotStore:
    return SnapshotStore(db_path=tmp_path / "test.db")


def _populate(scheduler: MessageScheduler, clock) -> None:
    now = clock.now()
    scheduler.schedule("+15550100", "one", now + timedelta(minutes=5), id="once-1")
    scheduler.schedule(
        "+15550101",
        {"text": "with files", "files": ["/tmp/report.pdf"]},
        now + timedelta(hours=1),
        id="once-2",
    )
    scheduler.schedule_recurring(
        "+15550102",
        "standup",
        now + timedelta(minutes=1),
        "daily",
        end_at=now + timedelta(days=10),
        id="rec-1",
    )
    scheduler.schedule_recurring("+15550103", "ping", now, 900_000, id="rec-2")


def _state(scheduler: MessageScheduler) -> list[tuple]:
    rows = []
    for entry in scheduler.get_pending():
        job = entry.job
        rows.append(
            (
                entry.kind,
                job.id,
                job.to,
                job.content,
                job.due_at,
                job.status,
                getattr(job, "send_count", None),
                getattr(job, "end_at", None),
            )
        )
    return rows


# -- export --------------------------------------------------------------------


def test_export_shape(scheduler: MessageScheduler, clock) -> None:
    _populate(scheduler, clock)

    data = scheduler.export()

    assert set(data) == {"scheduled", "recurring"}
    assert [j["id"] for j in data["scheduled"]] == ["once-1", "once-2"]
    assert [j["id"] for j in data["recurring"]] == ["rec-2", "rec-1"]
    assert data["scheduled"][1]["content"] == {"text": "with files", "files": ["/tmp/report.pdf"]}
    assert data["recurring"][0]["interval"] == 900_000
    # JSON-compatible throughout
    json.dumps(data)
    assert datetime.fromisoformat(data["scheduled"][0]["send_at"]) == clock.now() + timedelta(
        minutes=5
    )


async def test_export_excludes_terminal_jobs(scheduler: MessageScheduler, clock) -> None:
    scheduler.schedule("+1", "done", clock.now(), id="done")
    scheduler.schedule("+1", "later", clock.now() + timedelta(hours=1), id="later")
    await scheduler.tick()

    assert [j["id"] for j in scheduler.export()["scheduled"]] == ["later"]


# -- import --------------------------------------------------------------------


async def test_export_import_roundtrip(sender, clock, scheduler: MessageScheduler) -> None:
    _populate(scheduler, clock)
    await scheduler.tick()  # fires rec-2 once so send_count is non-zero
    before = _state(scheduler)
    data = scheduler.export()

    fresh = MessageScheduler(sender, clock=clock)
    result = fresh.import_snapshot(json.loads(json.dumps(data)))

    assert result.imported == 4
    assert result.skipped == 0
    assert _state(fresh) == before
    rec = fresh.get("rec-2")
    assert rec.send_count == 1
    assert rec.last_sent_at == clock.now()
    fresh.destroy()


def test_import_replaces_existing_jobs(scheduler: MessageScheduler, clock) -> None:
    scheduler.schedule("+1", "old", clock.now(), id="old")
    data = {
        "scheduled": [
            {
                "id": "new",
                "to": "+1",
                "content": "new",
                "send_at": "2025-01-02T09:00:00+00:00",
                "created_at": "2025-01-01T09:00:00+00:00",
            }
        ]
    }

    scheduler.import_snapshot(data)

    assert scheduler.get("old") is None
    assert scheduler.get_pending().ids() == ["new"]


def test_import_skips_terminal_entries(scheduler: MessageScheduler) -> None:
    data = {
        "scheduled": [
            {
                "id": "sent",
                "to": "+1",
                "content": "x",
                "send_at": "2025-01-02T09:00:00Z",
                "status": "sent",
                "created_at": "2025-01-01T09:00:00Z",
            }
        ],
        "recurring": [
            {
                "id": "done",
                "to": "+1",
                "content": "x",
                "start_at": "2025-01-01T09:00:00Z",
                "interval": "hourly",
                "next_send_at": "2025-01-01T10:00:00Z",
                "status": "completed",
                "created_at": "2025-01-01T09:00:00Z",
            }
        ],
    }

    result = scheduler.import_snapshot(data)

    assert result.imported == 0
    assert result.skipped == 2


async def test_import_skips_recurring_past_end(
    scheduler: MessageScheduler, sender, clock
) -> None:
    now = clock.now()
    data = {
        "recurring": [
            {
                "id": "over",
                "to": "+1",
                "content": "x",
                "start_at": (now - timedelta(days=3)).isoformat(),
                "interval": "daily",
                "next_send_at": (now - timedelta(hours=1)).isoformat(),
                "end_at": (now - timedelta(days=1)).isoformat(),
                "status": "active",
                "created_at": (now - timedelta(days=3)).isoformat(),
            }
        ]
    }

    result = scheduler.import_snapshot(data)
    await scheduler.tick()

    assert result.imported == 0
    assert result.skipped == 1
    assert scheduler.get("over") is None
    assert sender.sent == []


def test_import_accepts_epoch_timestamps(scheduler: MessageScheduler) -> None:
    epoch = int(datetime(2025, 1, 2, 9, 0, tzinfo=UTC).timestamp())
    scheduler.import_snapshot(
        {
            "scheduled": [
                {"id": "e", "to": "+1", "content": "x", "send_at": epoch, "created_at": epoch}
            ]
        }
    )
    assert scheduler.get("e").send_at == datetime(2025, 1, 2, 9, 0, tzinfo=UTC)


def test_import_past_due_jobs_fire_next_tick(scheduler: MessageScheduler, clock) -> None:
    past = (clock.now() - timedelta(days=1)).isoformat()
    scheduler.import_snapshot(
        {
            "scheduled": [
                {"id": "p", "to": "+1", "content": "x", "send_at": past, "created_at": past}
            ]
        }
    )
    entry = next(iter(scheduler.get_pending()))
    assert entry.kind is JobKind.ONCE
    assert entry.due_at < clock.now()


@pytest.mark.parametrize(
    "data",
    [
        None,
        [],
        {"scheduled": "nope"},
        {"scheduled": [{"id": "x"}]},
        {"scheduled": [{"id": "x", "to": "+1", "content": "x", "send_at": "soon",
                        "created_at": "2025-01-01T09:00:00Z"}]},
        {"recurring": [{"id": "r", "to": "+1", "content": "x", "start_at": "2025-01-01T09:00:00Z",
                        "interval": 0, "next_send_at": "2025-01-01T09:00:00Z",
                        "created_at": "2025-01-01T09:00:00Z"}]},
        {"recurring": [{"id": "r", "to": "+1", "content": "x", "start_at": "2025-01-01T09:00:00Z",
                        "interval": "monthly", "next_send_at": "2025-01-01T09:00:00Z",
                        "created_at": "2025-01-01T09:00:00Z"}]},
    ],
)
def test_import_rejects_malformed(scheduler: MessageScheduler, clock, data) -> None:
    scheduler.schedule("+1", "keep", clock.now(), id="keep")

    with pytest.raises(ImportFormatError):
        scheduler.import_snapshot(data)

    assert scheduler.get_pending().ids() == ["keep"]


def test_import_rejects_duplicate_ids(scheduler: MessageScheduler, clock) -> None:
    scheduler.schedule("+1", "keep", clock.now(), id="keep")
    entry = {
        "id": "dup",
        "to": "+1",
        "content": "x",
        "send_at": "2025-01-02T09:00:00Z",
        "created_at": "2025-01-01T09:00:00Z",
    }

    with pytest.raises(ImportFormatError, match="dup"):
        scheduler.import_snapshot({"scheduled": [entry, dict(entry)]})

    assert scheduler.get("keep") is not None


# -- SnapshotStore -------------------------------------------------------------


async def test_load_empty_store(store: SnapshotStore) -> None:
    assert await store.load() is None
    assert await store.saved_at() is None


async def test_save_and_load(store: SnapshotStore, scheduler: MessageScheduler, clock) -> None:
    _populate(scheduler, clock)
    data = scheduler.export()

    await store.save(data)

    assert await store.load() == data
    assert await store.saved_at() is not None


async def test_save_overwrites_previous(store: SnapshotStore) -> None:
    await store.save({"scheduled": [], "recurring": []})
    await store.save({"scheduled": [{"id": "x"}], "recurring": []})
    loaded = await store.load()
    assert loaded["scheduled"] == [{"id": "x"}]


async def test_clear(store: SnapshotStore) -> None:
    await store.save({"scheduled": [], "recurring": []})
    assert await store.clear() is True
    assert await store.load() is None
    assert await store.clear() is False


async def test_restore_across_restart(
    tmp_path: Path, sender, clock, scheduler: MessageScheduler
) -> None:
    _populate(scheduler, clock)
    await SnapshotStore(db_path=tmp_path / "persist.db").save(scheduler.export())
    before = _state(scheduler)
    scheduler.destroy()

    restarted = MessageScheduler(sender, clock=clock)
    data = await SnapshotStore(db_path=tmp_path / "persist.db").load()
    restarted.import_snapshot(data)

    assert _state(restarted) == before
    restarted.destroy()


def test_default_path_from_settings() -> None:
    assert SnapshotStore().db_path == Path("data/courier.db")
