"""Tests for the daily nutrient summary."""

import asyncio
from datetime import date

from macro_ledger.domain.values import decode_fields, encode_fields
from macro_ledger.services.micros import (
    MACRO_CODES,
    MICRO_CODES,
    MicroSyncService,
    summarize_day,
)
from macro_ledger.services.schedule import food_entries_from_fields
from tests.conftest import InMemoryFirestoreGateway

DAY = date(2024, 5, 1)

RAW_DAY = {
    "1": {
        "c": "200",
        "p": "10",
        "e": "20",
        "f": "5",
        "g": "100",
        "y": "2",
        "w": "75",
        "291": "4",
        "307": "100",
        "203": "10",
        "851": "1",
    },
    "2": {"c": "100", "p": "1", "e": "1", "f": "1", "g": "0", "291": "3"},
    "3": {"c": "999", "g": "100", "y": "1", "w": "100", "291": "50", "d": True},
    "_meta": {"291": "1000"},
}


def test_summary_scales_each_entry_by_its_own_multiplier() -> None:
    entries = food_entries_from_fields(DAY, RAW_DAY)

    summary = summarize_day(entries, RAW_DAY)

    assert summary["208"] == 400.0
    assert summary["203"] == 16.0
    assert summary["205"] == 31.0
    assert summary["204"] == 8.5
    assert summary["291"] == 9.0
    assert summary["307"] == 150.0


def test_summary_key_set_is_stable() -> None:
    summary = summarize_day([], {})

    assert set(summary) == set(MACRO_CODES) | set(MICRO_CODES)
    assert len(MICRO_CODES) == 52
    assert all(summary[code] is None for code in MICRO_CODES)
    assert all(summary[code] == 0.0 for code in MACRO_CODES)
    assert "851" not in summarize_day(
        food_entries_from_fields(DAY, RAW_DAY), RAW_DAY
    )


def test_sync_day_replaces_only_its_key() -> None:
    gateway = InMemoryFirestoreGateway()
    gateway.documents["users/u1/food/2024-05-01"] = encode_fields(RAW_DAY)
    gateway.documents["users/u1/micro/2024"] = encode_fields(
        {"0430": {"291": 12.5}, "0501": {"291": 99.0, "stale": 1}}
    )

    written = asyncio.run(MicroSyncService(gateway).sync_day("u1", DAY))

    path, _, mask = gateway.patches[-1]
    assert path == "users/u1/micro/2024"
    assert mask == ["`0501`"]
    stored = decode_fields(gateway.documents["users/u1/micro/2024"])
    assert stored["0430"] == {"291": 12.5}
    assert stored["0501"] == written
    assert "stale" not in stored["0501"]
    assert len(stored["0501"]) == len(MICRO_CODES) + len(MACRO_CODES)


def test_sync_day_without_day_bucket_writes_empty_summary() -> None:
    gateway = InMemoryFirestoreGateway()

    written = asyncio.run(MicroSyncService(gateway).sync_day("u1", DAY))

    assert written["208"] == 0.0
    assert written["291"] is None
    assert "users/u1/micro/2024" in gateway.documents
