"""Tests for calendar addressing and food entry mapping."""

import asyncio
from datetime import UTC, date, datetime

import pytest

from macro_ledger.domain.records import FoodEntry, consumption_multiplier
from macro_ledger.domain.values import encode_fields
from macro_ledger.errors import TransportError
from macro_ledger.services.schedule import (
    day_bucket_path,
    entry_id_for,
    food_entries_from_fields,
    food_entry_from,
    is_metadata_key,
    mmdd,
    number_field,
    parse_mmdd,
    read_year_range,
    year_bucket_path,
)
from tests.conftest import InMemoryFirestoreGateway


def test_paths_and_keys() -> None:
    day = date(2024, 3, 5)

    assert year_bucket_path("u1", "scale", 2024) == "users/u1/scale/2024"
    assert day_bucket_path("u1", day) == "users/u1/food/2024-03-05"
    assert mmdd(day) == "0305"


def test_unknown_category_is_rejected() -> None:
    with pytest.raises(ValueError):
        year_bucket_path("u1", "sleep", 2024)


@pytest.mark.parametrize(
    ("key", "year", "expected"),
    [
        ("0315", 2024, date(2024, 3, 15)),
        ("0229", 2024, date(2024, 2, 29)),
        ("0229", 2023, None),
        ("0230", 2023, None),
        ("1301", 2024, None),
        ("0000", 2024, None),
        ("_upd", 2024, None),
        ("315", 2024, None),
        ("03a5", 2024, None),
        ("\uff10\uff13\uff11\uff15", 2024, None),
    ],
)
def test_parse_mmdd(key: str, year: int, expected: date | None) -> None:
    assert parse_mmdd(key, year) == expected


def test_metadata_keys() -> None:
    assert is_metadata_key("_schema")
    assert is_metadata_key("03150")
    assert not is_metadata_key("0315")


def test_entry_id_is_scaled_epoch_millis() -> None:
    logged_at = datetime(2024, 5, 1, 12, 30, 15, 123000, tzinfo=UTC)

    assert entry_id_for(logged_at) == "1714566615123000"


def test_entry_id_truncates_sub_millisecond_time() -> None:
    logged_at = datetime(2024, 5, 1, 12, 30, 15, 123999, tzinfo=UTC)

    assert entry_id_for(logged_at) == "1714566615123000"


def test_number_field_coerces_strings() -> None:
    obj = {"a": "1.5", "b": 2, "c": "n/a", "d": True, "e": None}

    assert number_field(obj, "a") == 1.5
    assert number_field(obj, "b") == 2.0
    assert number_field(obj, "c") is None
    assert number_field(obj, "d") is None
    assert number_field(obj, "missing") is None


def test_multiplier_law() -> None:
    assert consumption_multiplier(100, 1, 100) == 1.0
    assert consumption_multiplier(100, 2, 150) == 3.0
    assert consumption_multiplier(0, 1, 100) is None
    assert consumption_multiplier(-5, 1, 100) is None
    assert consumption_multiplier(None, 1, 100) is None


def test_raw_value_passes_through_without_serving_grams() -> None:
    entry = FoodEntry(
        date=date(2024, 1, 1),
        entry_id="1",
        calories_raw=250.0,
        serving_grams=0.0,
        user_qty=2.0,
        unit_weight=50.0,
    )

    assert entry.multiplier() is None
    assert entry.calories() == 250.0
    assert entry.calories_raw == 250.0


def test_food_entry_mapping() -> None:
    entry = food_entry_from(
        date(2024, 5, 1),
        "1714566615123000",
        {
            "t": "Oats",
            "b": "Acme",
            "c": "150.0",
            "p": "5",
            "e": 27,
            "f": "2.5",
            "g": "40.0",
            "y": "2",
            "w": "40",
            "q": "2",
            "s": "cup",
            "h": 7,
            "mi": "5",
            "k": "t",
            "id": "food-9",
            "d": False,
            "ef": None,
            "291": "4",
            "\uff12\uff19\uff11": "9",
        },
    )

    assert entry.multiplier() == 2.0
    assert entry.calories() == 300.0
    assert entry.carbs() == 54.0
    assert entry.nutrient("291") == 8.0
    assert set(entry.nutrients) == {"291"}
    assert entry.hour == "7"
    assert entry.deleted is False
    assert entry.is_live()


def test_food_entries_sort_by_time_of_day() -> None:
    fields = {
        "3": {"t": "dinner", "h": "19", "mi": "0"},
        "1": {"t": "late breakfast", "h": "9", "mi": "45"},
        "2": {"t": "breakfast", "h": "9", "mi": "5"},
        "4": {"t": "undated"},
        "5": {"t": "garbled", "h": "x"},
        "_meta": {"t": "skip"},
        "6": "not an entry",
    }

    entries = food_entries_from_fields(date(2024, 5, 1), fields)

    assert [entry.name for entry in entries] == [
        "undated",
        "garbled",
        "breakfast",
        "late breakfast",
        "dinner",
    ]


def test_read_year_range_spans_years_and_filters() -> None:
    gateway = InMemoryFirestoreGateway()
    gateway.documents["users/u1/steps/2023"] = encode_fields(
        {
            "1230": {"st": 100},
            "1231": {"st": 200},
            "0230": {"st": 999},
            "_updated": {"st": 1},
        }
    )
    gateway.documents["users/u1/steps/2024"] = encode_fields(
        {"0102": {"st": 400}, "0101": {"st": 300}, "0103": {"st": 500}}
    )

    records = asyncio.run(
        read_year_range(
            gateway,
            "u1",
            "steps",
            date(2023, 12, 31),
            date(2025, 1, 2),
            lambda day, obj: (day, obj["st"]),
        )
    )

    assert records == [
        (date(2023, 12, 31), 200),
        (date(2024, 1, 1), 300),
        (date(2024, 1, 2), 400),
        (date(2024, 1, 3), 500),
    ]
    assert "users/u1/steps/2025" in gateway.reads


def test_read_year_range_propagates_other_failures() -> None:
    gateway = InMemoryFirestoreGateway()
    gateway.failures["users/u1/scale/2024"] = TransportError(500, "boom")

    with pytest.raises(TransportError):
        asyncio.run(
            read_year_range(
                gateway,
                "u1",
                "scale",
                date(2024, 1, 1),
                date(2024, 12, 31),
                lambda day, obj: day,
            )
        )
