"""Read and write operations over a user's health journal."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Protocol

from macro_ledger.adapters.firestore_client import FirestoreGateway, quote_field_path
from macro_ledger.domain.records import (
    FoodEntry,
    Goals,
    MicroSummary,
    NutritionSummary,
    ScaleEntry,
    StepEntry,
    UserProfile,
)
from macro_ledger.domain.search import SearchFoodResult, ServingOption
from macro_ledger.domain.values import encode_fields
from macro_ledger.errors import DecodeError, NotFoundError
from macro_ledger.services.micros import MicroSyncService
from macro_ledger.services.schedule import (
    coerce_number,
    day_bucket_path,
    entry_id_for,
    food_entries_from_fields,
    is_nutrient_code,
    mmdd,
    number_field,
    read_year_range,
    string_field,
    user_path,
    year_bucket_path,
)

QUICK_ADD_BRAND = "Quick Add"
MANUAL_SOURCE = "m"
CUSTOM_FOOD = "n"
SEARCHED_FOOD = "t"
FOOD_ID_OFFSET = 10

_logger = logging.getLogger(__name__)


class UserIdSource(Protocol):
    """Resolves the signed-in user's id."""

    async def user_id(self) -> str:
        """Return the current user id."""


@dataclass
class JournalService:
    """Typed access to the user's year buckets, day buckets and profile."""

    gateway: FirestoreGateway
    identity: UserIdSource
    micro_sync: MicroSyncService | None = None
    sync_micros: bool = True

    async def get_profile(self) -> UserProfile:
        """Return the user profile document."""
        uid = await self.identity.user_id()
        fields = await self._user_fields(uid)
        return UserProfile(
            id=uid,
            name=string_field(fields, "name"),
            email=string_field(fields, "email"),
            sex=string_field(fields, "sex"),
            dob=string_field(fields, "dob"),
            height=number_field(fields, "height"),
            height_units=string_field(fields, "heightUnits"),
            weight_units=string_field(fields, "weightUnits"),
            calorie_units=string_field(fields, "calorieUnits"),
        )

    async def get_goals(self) -> Goals:
        """Return planner targets from the user profile."""
        uid = await self.identity.user_id()
        fields = await self._user_fields(uid)
        planner = fields.get("planner")
        if not isinstance(planner, Mapping):
            raise DecodeError("No planner field in user profile")
        return Goals(
            calories=_number_list(planner.get("calories")),
            protein=_number_list(planner.get("protein")),
            carbs=_number_list(planner.get("carbs")),
            fat=_number_list(planner.get("fat")),
            tdee=number_field(planner, "tdeeValue"),
            program_style=string_field(planner, "programStyle"),
            program_type=string_field(planner, "programType"),
        )

    async def get_raw_document(self, path: str) -> dict[str, object]:
        """Return any document as decoded fields plus ``_id`` and ``_path``."""
        document = await self.gateway.get_document(path)
        return document.to_record()

    async def list_subcollections(self, document_path: str) -> list[str]:
        """Return the sub-collection ids of a document."""
        return await self.gateway.list_collection_ids(document_path)

    async def sample_collection(
        self, collection_path: str, limit: int = 5
    ) -> list[dict[str, object]]:
        """Return the first ``limit`` documents of a collection, decoded."""
        documents, _ = await self.gateway.list_documents(
            collection_path, page_size=limit
        )
        return [document.to_record() for document in documents]

    async def get_weight_entries(self, start: date, end: date) -> list[ScaleEntry]:
        """Return scale entries in ``[start, end]``."""
        uid = await self.identity.user_id()
        return await read_year_range(self.gateway, uid, "scale", start, end, _scale)

    async def get_nutrition(self, start: date, end: date) -> list[NutritionSummary]:
        """Return daily nutrition summaries in ``[start, end]``."""
        uid = await self.identity.user_id()
        return await read_year_range(
            self.gateway, uid, "nutrition", start, end, _nutrition
        )

    async def get_steps(self, start: date, end: date) -> list[StepEntry]:
        """Return daily step counts in ``[start, end]``."""
        uid = await self.identity.user_id()
        return await read_year_range(self.gateway, uid, "steps", start, end, _steps)

    async def get_micros(self, start: date, end: date) -> list[MicroSummary]:
        """Return synced daily nutrient summaries in ``[start, end]``."""
        uid = await self.identity.user_id()
        return await read_year_range(self.gateway, uid, "micro", start, end, _micro)

    async def get_food_log(
        self, day: date, include_deleted: bool = False
    ) -> list[FoodEntry]:
        """Return the food entries logged on ``day``, ordered by time."""
        uid = await self.identity.user_id()
        try:
            document = await self.gateway.get_document(day_bucket_path(uid, day))
        except NotFoundError:
            return []
        entries = food_entries_from_fields(day, document.decoded_fields())
        if include_deleted:
            return entries
        return [entry for entry in entries if entry.is_live()]

    async def log_food(  # noqa: PLR0913
        self,
        logged_at: datetime,
        name: str,
        calories: float,
        protein: float,
        carbs: float,
        fat: float,
    ) -> str:
        """Quick-add a food entry with fixed macros; returns its entry id."""
        entry_id = entry_id_for(logged_at)
        entry: dict[str, object] = {
            "t": name,
            "b": QUICK_ADD_BRAND,
            "c": f"{calories:.1f}",
            "p": f"{protein:.1f}",
            "e": f"{carbs:.1f}",
            "f": f"{fat:.1f}",
            "w": "100.0",
            "g": "100.0",
            "q": "1.0",
            "y": "1.0",
            "s": "serving",
            "u": "serving",
            "k": CUSTOM_FOOD,
            "id": _food_id(entry_id),
            "ef": True,
            "x": "13",
            "m": [{"m": "serving", "q": "1.0", "w": "100.0"}],
        }
        await self._write_food_entry(logged_at, entry_id, entry)
        return entry_id

    async def log_searched_food(
        self,
        logged_at: datetime,
        food: SearchFoodResult,
        serving: ServingOption,
        quantity: float,
    ) -> str:
        """Log ``quantity`` servings of a searched food; returns its entry id.

        Values are stored per 100 g; the unit weight and chosen quantity carry
        the portion so the multiplier law yields the consumed amount. A serving
        amount that is not positive counts as one unit.
        """
        entry_id = entry_id_for(logged_at)
        amount = serving.amount if serving.amount > 0 else 1.0
        unit_weight = serving.gram_weight / amount
        entry: dict[str, object] = {
            "t": food.name,
            "c": _decimal(food.calories_per_100g),
            "p": _decimal(food.protein_per_100g),
            "e": _decimal(food.carbs_per_100g),
            "f": _decimal(food.fat_per_100g),
            "g": "100.0",
            "w": _decimal(unit_weight),
            "y": _decimal(quantity * amount),
            "q": _decimal(quantity),
            "s": serving.description,
            "u": serving.description,
            "k": SEARCHED_FOOD,
            "id": food.food_id,
            "m": [
                {
                    "m": option.description,
                    "q": _decimal(option.amount),
                    "w": _decimal(option.gram_weight),
                }
                for option in food.servings or [serving]
            ],
        }
        if food.brand:
            entry["b"] = food.brand
        if food.image_id:
            entry["ii"] = food.image_id
        for code, value in food.nutrients_per_100g.items():
            entry[code] = _decimal(value)
        await self._write_food_entry(logged_at, entry_id, entry)
        return entry_id

    async def delete_food_entry(self, day: date, entry_id: str) -> None:
        """Remove an entry from the day bucket.

        The mask names the entry while the body omits it, which deletes the
        key and leaves every other entry of the day untouched.
        """
        uid = await self.identity.user_id()
        await self.gateway.patch_document(
            day_bucket_path(uid, day), {}, [quote_field_path(entry_id)]
        )
        _logger.info("Deleted food entry %s on %s", entry_id, day.isoformat())
        await self._sync(uid, day)

    async def log_weight(
        self, day: date, weight_kg: float, body_fat: float | None = None
    ) -> None:
        """Write the weight (kg) for ``day``."""
        entry = {"w": weight_kg, "f": body_fat, "s": MANUAL_SOURCE, "do": None}
        await self._write_day_value("scale", day, entry)

    async def log_nutrition(
        self,
        day: date,
        calories: float,
        protein: float | None = None,
        carbs: float | None = None,
        fat: float | None = None,
    ) -> None:
        """Write the daily nutrition totals for ``day``."""
        entry = {
            "k": f"{calories:.0f}",
            "p": _rounded_or_empty(protein),
            "c": _rounded_or_empty(carbs),
            "f": _rounded_or_empty(fat),
            "s": MANUAL_SOURCE,
            "do": None,
        }
        await self._write_day_value("nutrition", day, entry)

    async def log_steps(self, day: date, steps: int) -> None:
        """Write the step count for ``day``."""
        entry = {"st": int(steps), "s": MANUAL_SOURCE}
        await self._write_day_value("steps", day, entry)

    async def delete_day_value(self, category: str, day: date) -> None:
        """Remove the ``MMDD`` key for ``day`` from a year bucket."""
        uid = await self.identity.user_id()
        await self.gateway.patch_document(
            year_bucket_path(uid, category, day.year),
            {},
            [quote_field_path(mmdd(day))],
        )

    async def _user_fields(self, uid: str) -> dict[str, object]:
        document = await self.gateway.get_document(user_path(uid))
        return document.decoded_fields()

    async def _write_day_value(
        self, category: str, day: date, entry: dict[str, object]
    ) -> None:
        uid = await self.identity.user_id()
        key = mmdd(day)
        await self.gateway.patch_document(
            year_bucket_path(uid, category, day.year),
            encode_fields({key: entry}),
            [quote_field_path(key)],
        )

    async def _write_food_entry(
        self, logged_at: datetime, entry_id: str, entry: dict[str, object]
    ) -> None:
        uid = await self.identity.user_id()
        day = logged_at.date()
        entry.update(
            {
                "h": str(logged_at.hour),
                "mi": str(logged_at.minute),
                "ca": entry_id,
                "ua": entry_id,
                "d": False,
            }
        )
        await self.gateway.patch_document(
            day_bucket_path(uid, day),
            encode_fields({entry_id: entry}),
            [quote_field_path(entry_id)],
        )
        _logger.info("Logged food entry %s on %s", entry_id, day.isoformat())
        await self._sync(uid, day)

    async def _sync(self, uid: str, day: date) -> None:
        if self.sync_micros and self.micro_sync is not None:
            await self.micro_sync.sync_day(uid, day)


def _scale(day: date, obj: Mapping[str, object]) -> ScaleEntry:
    return ScaleEntry(
        date=day,
        weight=number_field(obj, "w") or 0.0,
        body_fat=number_field(obj, "f"),
        source=string_field(obj, "s"),
    )


def _nutrition(day: date, obj: Mapping[str, object]) -> NutritionSummary:
    return NutritionSummary(
        date=day,
        calories=number_field(obj, "k"),
        protein=number_field(obj, "p"),
        carbs=number_field(obj, "c"),
        fat=number_field(obj, "f"),
        sugar=number_field(obj, "269"),
        fiber=number_field(obj, "291"),
        source=string_field(obj, "s"),
    )


def _steps(day: date, obj: Mapping[str, object]) -> StepEntry:
    steps = number_field(obj, "st")
    return StepEntry(
        date=day,
        steps=int(steps) if steps is not None else 0,
        source=string_field(obj, "s"),
    )


def _micro(day: date, obj: Mapping[str, object]) -> MicroSummary:
    values = {key: number_field(obj, key) for key in obj if is_nutrient_code(key)}
    return MicroSummary(date=day, values=values)


def _number_list(raw: object) -> list[float]:
    if not isinstance(raw, list):
        return []
    values = (coerce_number(item) for item in raw)
    return [value for value in values if value is not None]


def _food_id(entry_id: str) -> str:
    return str(int(entry_id) + FOOD_ID_OFFSET)


def _decimal(value: float) -> str:
    return str(round(float(value), 4))


def _rounded_or_empty(value: float | None) -> str:
    return f"{value:.0f}" if value is not None else ""
