"""Tests for storage backends, persisted datasets and timestamp helpers."""

from __future__ import annotations

from datetime import datetime

from pydantic import TypeAdapter

from readgoals._util import EPOCH_TIMESTAMP, format_timestamp, parse_timestamp
from readgoals.storage.backend import MemoryBackend, SQLiteBackend
from readgoals.storage.datasets import PersistedDataset, decode_field


def test_sqlite_backend_round_trip(tmp_path):
    backend = SQLiteBackend(str(tmp_path / "nested" / "goals.db"))
    assert backend.get_item("goalsData") is None

    backend.set_item("goalsData", '{"targets": []}')
    backend.set_item("goalsData", '{"targets": [1]}')
    assert backend.get_item("goalsData") == '{"targets": [1]}'

    reopened = SQLiteBackend(str(tmp_path / "nested" / "goals.db"))
    assert reopened.get_item("goalsData") == '{"targets": [1]}'

    reopened.remove_item("goalsData")
    assert backend.get_item("goalsData") is None


def test_memory_backend_remove_missing_key():
    backend = MemoryBackend({"a": "1"})
    backend.remove_item("b")
    assert backend.items == {"a": "1"}


def test_dataset_save_stamps_now(clock):
    backend = MemoryBackend()
    dataset = PersistedDataset(backend, "goalSettings", "goalSettingsUpdatedAt", clock)

    assert dataset.load() is None
    assert dataset.get_updated_at() == EPOCH_TIMESTAMP

    dataset.save({"annualGoals": []})
    assert dataset.load() == {"annualGoals": []}
    assert parse_timestamp(dataset.get_updated_at()) == clock.now

    dataset.save({"annualGoals": []}, updated_at="2024-01-01T00:00:00.000Z")
    assert dataset.get_updated_at() == "2024-01-01T00:00:00.000Z"


def test_dataset_unparseable_payload(clock):
    backend = MemoryBackend({"goalSettings": "{oops"})
    dataset = PersistedDataset(backend, "goalSettings", "goalSettingsUpdatedAt", clock)
    assert dataset.load() is None


def test_decode_field():
    adapter = TypeAdapter(dict[str, str])
    assert decode_field(adapter, {"v1": "2024-01-01"}, {}) == {"v1": "2024-01-01"}
    assert decode_field(adapter, None, {"d": "x"}) == {"d": "x"}
    assert decode_field(adapter, ["not", "a", "dict"], {}) == {}


def test_timestamp_format_and_parse():
    local = datetime(2024, 3, 15, 12, 30, 45, 123000)
    formatted = format_timestamp(local)
    assert formatted.endswith("Z")
    assert len(formatted) == len("2024-03-15T12:30:45.123Z")
    assert parse_timestamp(formatted) == local

    assert parse_timestamp("2024-03-15T08:00:00") == datetime(2024, 3, 15, 8)
    assert parse_timestamp("") is None
    assert parse_timestamp("yesterday") is None
    assert parse_timestamp(1710000000) is None
