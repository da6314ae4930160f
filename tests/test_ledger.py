"""Tests for the completion ledger: backfill, write-back and sync merge."""

from __future__ import annotations

import json

import pytest
from conftest import catalog_entry, volume

from readgoals._util import parse_timestamp
from readgoals.goals.ledger import COMPLETED_AT_UPDATED_AT_KEY, CompletionLedger
from readgoals.library.progress_log import ProgressLog


def _ledger(backend, clock, stored=None) -> CompletionLedger:
    if stored is not None:
        backend.set_item("volumes", json.dumps(stored))
    return CompletionLedger(ProgressLog(backend, clock), backend, clock)


def _stored_volumes(backend) -> dict:
    return json.loads(backend.get_item("volumes"))


# ---- loading ----


def test_loads_stamps_from_progress_log(backend, clock):
    ledger = _ledger(
        backend,
        clock,
        {
            "v1": {"progress": 100, "completed": True, "completedAt": "2024-01-02T10:00:00"},
            "v2": {"progress": 5, "completedAt": ""},
            "v3": "not a record",
        },
    )
    assert dict(ledger.query()) == {"v1": "2024-01-02T10:00:00"}


def test_corrupt_progress_log_gives_empty_ledger(backend, clock):
    backend.set_item("volumes", "{not json")
    ledger = CompletionLedger(ProgressLog(backend, clock), backend, clock)
    assert dict(ledger.query()) == {}


def test_query_is_read_only(backend, clock):
    ledger = _ledger(backend, clock)
    view = ledger.query()
    with pytest.raises(TypeError):
        view["v1"] = "x"
    assert dict(ledger.query()) == {}


# ---- backfill ----


def test_backfill_uses_last_progress_update(backend, clock):
    ledger = _ledger(backend, clock)
    added = ledger.backfill(
        {"v1": volume(progress=10, completed=True, last_update="2024-03-10T08:00:00")},
        {},
    )
    assert added == ["v1"]
    assert ledger.query()["v1"] == "2024-03-10T08:00:00"


def test_backfill_page_count_reached(backend, clock):
    ledger = _ledger(backend, clock)
    ledger.backfill(
        {
            "done": volume(progress=180, last_update="2024-03-01T09:00:00"),
            "reading": volume(progress=50, last_update="2024-03-01T09:00:00"),
            "unknown_size": volume(progress=500),
        },
        {"done": catalog_entry(180), "reading": catalog_entry(180), "unknown_size": catalog_entry(0)},
    )
    assert set(ledger.query()) == {"done"}


def test_backfill_falls_back_to_now(backend, clock):
    ledger = _ledger(backend, clock)
    ledger.backfill({"v1": volume(completed=True)}, {})
    assert parse_timestamp(ledger.query()["v1"]) == clock.now


def test_backfill_is_idempotent(backend, clock):
    ledger = _ledger(backend, clock)
    volumes = {"v1": volume(completed=True, last_update="2024-03-10T08:00:00")}

    ledger.backfill(volumes, {})
    first = ledger.completed_at.get()
    notified = []
    ledger.completed_at.subscribe(notified.append)

    assert ledger.backfill(volumes, {}) == []
    assert ledger.completed_at.get() is first
    assert notified == []


def test_backfill_never_overwrites(backend, clock):
    ledger = _ledger(backend, clock)
    ledger.backfill({"v1": volume(completed=True, last_update="2024-03-10T08:00:00")}, {})
    ledger.backfill({"v1": volume(completed=True, last_update="2024-03-14T08:00:00")}, {})
    assert ledger.query()["v1"] == "2024-03-10T08:00:00"


def test_backfill_writes_back_to_progress_log(backend, clock):
    ledger = _ledger(backend, clock, {"v1": {"progress": 300, "completed": True, "title": "Kept"}})
    ledger.backfill({"v1": volume(progress=300, completed=True, last_update="2024-03-10T08:00:00")}, {})

    stored = _stored_volumes(backend)
    assert stored["v1"]["completedAt"] == "2024-03-10T08:00:00"
    assert stored["v1"]["title"] == "Kept"
    assert backend.get_item(COMPLETED_AT_UPDATED_AT_KEY) is not None


def test_noop_backfill_does_not_write(backend, clock):
    ledger = _ledger(backend, clock, {"v1": {"progress": 3}})
    ledger.backfill({"v1": volume(progress=3)}, {"v1": catalog_entry(100)})
    assert backend.get_item(COMPLETED_AT_UPDATED_AT_KEY) is None


def test_write_back_failure_is_swallowed(backend, clock):
    ledger = _ledger(backend, clock, {"v1": {"progress": 1}})

    def broken(_map):
        raise OSError("disk full")

    ledger.progress_log.write_completed_at = broken
    ledger.backfill({"v1": volume(completed=True, last_update="2024-03-10T08:00:00")}, {})
    assert ledger.query()["v1"] == "2024-03-10T08:00:00"


# ---- sync merge ----


def test_merge_keeps_earliest(backend, clock):
    ledger = _ledger(backend, clock)
    ledger.backfill({"v1": volume(completed=True, last_update="2024-02-01T00:00:00Z")}, {})

    ledger.merge_from_sync({"v1": "2024-01-15T00:00:00Z"}, "2024-03-01T00:00:00.000Z")
    assert ledger.query()["v1"] == "2024-01-15T00:00:00Z"

    ledger.merge_from_sync({"v1": "2024-02-20T00:00:00Z"}, "2024-03-02T00:00:00.000Z")
    assert ledger.query()["v1"] == "2024-01-15T00:00:00Z"


def test_merge_adopts_new_and_ignores_invalid(backend, clock):
    ledger = _ledger(backend, clock)
    ledger.backfill({"v1": volume(completed=True, last_update="2024-02-01T00:00:00Z")}, {})

    ledger.merge_from_sync({"v1": "garbage", "v2": "2024-01-01T00:00:00Z", "v3": ""}, "2024-03-01T00:00:00.000Z")
    assert dict(ledger.query()) == {"v1": "2024-02-01T00:00:00Z", "v2": "2024-01-01T00:00:00Z"}


def test_merge_replaces_invalid_local_stamp(backend, clock):
    ledger = _ledger(backend, clock, {"v1": {"completedAt": "garbage"}})
    ledger.merge_from_sync({"v1": "2024-01-01T00:00:00Z"}, "2024-03-01T00:00:00.000Z")
    assert ledger.query()["v1"] == "2024-01-01T00:00:00Z"


def test_merge_sets_remote_stamp_and_writes_back(backend, clock):
    ledger = _ledger(backend, clock, {"v1": {"progress": 10}})
    ledger.merge_from_sync({"v1": "2024-01-15T00:00:00Z"}, "2024-03-01T00:00:00.000Z")

    assert backend.get_item(COMPLETED_AT_UPDATED_AT_KEY) == "2024-03-01T00:00:00.000Z"
    assert _stored_volumes(backend)["v1"]["completedAt"] == "2024-01-15T00:00:00Z"
