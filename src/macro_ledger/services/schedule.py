"""Calendar addressing over year-bucketed and day-bucketed documents.

Daily scalar records live in one document per user, category and year, keyed
by ``MMDD``. Food logs live in one document per day, keyed by entry id.
"""

import logging
import re
from collections.abc import Callable, Mapping
from datetime import UTC, date, datetime, timedelta
from typing import TypeVar

from macro_ledger.adapters.firestore_client import FirestoreGateway
from macro_ledger.domain.records import FoodEntry
from macro_ledger.errors import NotFoundError

YEAR_CATEGORIES = frozenset({"scale", "nutrition", "steps", "micro"})
MMDD_LENGTH = 4
ENTRY_ID_SCALE = 1000

_MMDD_KEY = re.compile(r"[0-9]{4}")
_NUTRIENT_CODE = re.compile(r"[0-9]+")
_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

RecordT = TypeVar("RecordT")

_logger = logging.getLogger(__name__)


def user_path(uid: str) -> str:
    """Path of the top-level user document."""
    return f"users/{uid}"


def year_bucket_path(uid: str, category: str, year: int) -> str:
    """Path of the yearly document for a category."""
    if category not in YEAR_CATEGORIES:
        raise ValueError(f"Unknown year bucket category: {category}")
    return f"users/{uid}/{category}/{year}"


def day_bucket_path(uid: str, day: date) -> str:
    """Path of the food log document for a date."""
    return f"users/{uid}/food/{day.isoformat()}"


def mmdd(day: date) -> str:
    """Compact month-day key for a date."""
    return day.strftime("%m%d")


def is_metadata_key(key: str) -> bool:
    """Return True for bucket keys that are not ``MMDD`` day codes."""
    return key.startswith("_") or len(key) != MMDD_LENGTH


def parse_mmdd(key: str, year: int) -> date | None:
    """Return the calendar date for an ``MMDD`` key, or None if invalid."""
    if is_metadata_key(key) or not _MMDD_KEY.fullmatch(key):
        return None
    try:
        return date(year, int(key[:2]), int(key[2:]))
    except ValueError:
        return None


def entry_id_for(logged_at: datetime) -> str:
    """Entry id for a food log entry: epoch milliseconds scaled to micros."""
    # Naive datetimes are taken as local time.
    aware = logged_at if logged_at.tzinfo is not None else logged_at.astimezone()
    millis = (aware - _EPOCH) // timedelta(milliseconds=1)
    return str(millis * ENTRY_ID_SCALE)


def is_nutrient_code(key: str) -> bool:
    """Return True for ASCII digit-only keys, which name USDA nutrient codes."""
    return _NUTRIENT_CODE.fullmatch(key) is not None


def coerce_number(value: object) -> float | None:
    """Coerce a number or decimal string to float; anything else is None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def number_field(obj: Mapping[str, object], key: str) -> float | None:
    """Read a numeric field stored either as a number or a decimal string."""
    return coerce_number(obj.get(key))


def string_field(obj: Mapping[str, object], key: str) -> str | None:
    """Read a string field."""
    value = obj.get(key)
    return value if isinstance(value, str) else None


def bool_field(obj: Mapping[str, object], key: str) -> bool | None:
    """Read a boolean field."""
    value = obj.get(key)
    return value if isinstance(value, bool) else None


def food_sort_key(entry: FoodEntry) -> tuple[int, int]:
    """Order food entries by ``(hour, minute)``, defaulting to zero."""
    return _clock_part(entry.hour), _clock_part(entry.minute)


def _clock_part(value: str | None) -> int:
    if value is None:
        return 0
    try:
        return int(value)
    except ValueError:
        return 0


async def read_year_range(
    gateway: FirestoreGateway,
    uid: str,
    category: str,
    start: date,
    end: date,
    mapper: Callable[[date, Mapping[str, object]], RecordT | None],
) -> list[RecordT]:
    """Read ``[start, end]`` from the yearly buckets of a category.

    A year without a bucket is skipped; any other failure propagates.
    """
    records: list[tuple[date, RecordT]] = []
    for year in range(start.year, end.year + 1):
        path = year_bucket_path(uid, category, year)
        try:
            document = await gateway.get_document(path)
        except NotFoundError:
            _logger.debug("No %s bucket for %s", category, year)
            continue
        for key, value in document.decoded_fields().items():
            day = parse_mmdd(key, year)
            if day is None or day < start or day > end:
                continue
            if not isinstance(value, Mapping):
                continue
            record = mapper(day, value)
            if record is not None:
                records.append((day, record))
    records.sort(key=lambda item: item[0])
    return [record for _, record in records]


def food_entry_from(
    day: date, entry_id: str, obj: Mapping[str, object]
) -> FoodEntry:
    """Map a raw day-bucket entry object to a ``FoodEntry``."""
    nutrients: dict[str, float] = {}
    for key in obj:
        if not is_nutrient_code(key):
            continue
        value = number_field(obj, key)
        if value is not None:
            nutrients[key] = value
    return FoodEntry(
        date=day,
        entry_id=entry_id,
        name=string_field(obj, "t"),
        brand=string_field(obj, "b"),
        calories_raw=number_field(obj, "c"),
        protein_raw=number_field(obj, "p"),
        carbs_raw=number_field(obj, "e"),
        fat_raw=number_field(obj, "f"),
        serving_grams=number_field(obj, "g"),
        user_qty=number_field(obj, "y"),
        unit_weight=number_field(obj, "w"),
        quantity=number_field(obj, "q"),
        serving_unit=string_field(obj, "s"),
        hour=_text_value(obj.get("h")),
        minute=_text_value(obj.get("mi")),
        source_type=string_field(obj, "k"),
        food_id=_text_value(obj.get("id")),
        deleted=bool_field(obj, "d"),
        ef=obj.get("ef"),
        nutrients=nutrients,
    )


def food_entries_from_fields(
    day: date, fields: Mapping[str, object]
) -> list[FoodEntry]:
    """Map every entry of a decoded day bucket, sorted by time of day."""
    entries = [
        food_entry_from(day, key, value)
        for key, value in fields.items()
        if not key.startswith("_") and isinstance(value, Mapping)
    ]
    entries.sort(key=food_sort_key)
    return entries


def _text_value(value: object) -> str | None:
    # hour, minute and id may be stored as integers.
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    return value if isinstance(value, str) else None
