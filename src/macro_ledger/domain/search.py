"""Domain models for food search results."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ServingOption:
    """A selectable serving for a searched food."""

    description: str
    amount: float
    gram_weight: float


@dataclass(frozen=True)
class SearchFoodResult:
    """Food returned by the search index, with per-100g values."""

    food_id: str
    name: str
    brand: str | None
    calories_per_100g: float
    protein_per_100g: float
    carbs_per_100g: float
    fat_per_100g: float
    servings: list[ServingOption]
    default_serving: ServingOption | None
    branded: bool
    image_id: str | None = None
    source: str | None = None
    nutrients_per_100g: dict[str, float] = field(default_factory=dict)
