"""Domain records reconstructed from year and day buckets."""

from dataclasses import dataclass, field
from datetime import date


@dataclass(frozen=True)
class ScaleEntry:
    """Weight measurement for a day."""

    date: date
    weight: float
    body_fat: float | None
    source: str | None


@dataclass(frozen=True)
class NutritionSummary:
    """Daily nutrition totals."""

    date: date
    calories: float | None
    protein: float | None
    carbs: float | None
    fat: float | None
    sugar: float | None
    fiber: float | None
    source: str | None


@dataclass(frozen=True)
class StepEntry:
    """Daily step count."""

    date: date
    steps: int
    source: str | None


@dataclass(frozen=True)
class MicroSummary:
    """Per-day nutrient totals keyed by USDA nutrient code."""

    date: date
    values: dict[str, float | None]

    def get(self, code: str) -> float | None:
        """Return the total for a nutrient code, if recorded."""
        return self.values.get(code)


@dataclass(frozen=True)
class FoodEntry:
    """A single food log entry.

    Macro and nutrient values are stored relative to ``serving_grams``; use
    the accessor methods for the amounts actually consumed.
    """

    date: date
    entry_id: str
    name: str | None = None
    brand: str | None = None
    calories_raw: float | None = None
    protein_raw: float | None = None
    carbs_raw: float | None = None
    fat_raw: float | None = None
    serving_grams: float | None = None
    user_qty: float | None = None
    unit_weight: float | None = None
    quantity: float | None = None
    serving_unit: str | None = None
    hour: str | None = None
    minute: str | None = None
    source_type: str | None = None
    food_id: str | None = None
    deleted: bool | None = None
    ef: object = None
    nutrients: dict[str, float] = field(default_factory=dict)

    def multiplier(self) -> float | None:
        """Return ``user_qty * unit_weight / serving_grams`` when defined."""
        return consumption_multiplier(
            self.serving_grams, self.user_qty, self.unit_weight
        )

    def calories(self) -> float | None:
        """Consumed calories."""
        return self._scaled(self.calories_raw)

    def protein(self) -> float | None:
        """Consumed protein in grams."""
        return self._scaled(self.protein_raw)

    def carbs(self) -> float | None:
        """Consumed carbohydrates in grams."""
        return self._scaled(self.carbs_raw)

    def fat(self) -> float | None:
        """Consumed fat in grams."""
        return self._scaled(self.fat_raw)

    def nutrient(self, code: str) -> float | None:
        """Consumed amount of a micronutrient by USDA code."""
        return self._scaled(self.nutrients.get(code))

    def is_live(self) -> bool:
        """Return True unless the entry carries a legacy soft-delete flag."""
        return self.deleted is not True

    def _scaled(self, raw: float | None) -> float | None:
        if raw is None:
            return None
        factor = self.multiplier()
        if factor is None:
            return raw
        return raw * factor


@dataclass(frozen=True)
class Goals:
    """Planner targets, one value per weekday starting Monday."""

    calories: list[float]
    protein: list[float]
    carbs: list[float]
    fat: list[float]
    tdee: float | None
    program_style: str | None
    program_type: str | None


@dataclass(frozen=True)
class UserProfile:
    """Top-level user document."""

    id: str
    name: str | None
    email: str | None
    sex: str | None
    dob: str | None
    height: float | None
    height_units: str | None
    weight_units: str | None
    calorie_units: str | None


def consumption_multiplier(
    serving_grams: float | None, user_qty: float | None, unit_weight: float | None
) -> float | None:
    """Return the scaling ratio for consumed amounts.

    Undefined (``None``) when the serving weight is missing or not positive,
    or when the chosen quantity or unit weight is missing.
    """
    if serving_grams is None or serving_grams <= 0:
        return None
    if user_qty is None or unit_weight is None:
        return None
    return (user_qty * unit_weight) / serving_grams
