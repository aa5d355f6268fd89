"""Food search over the common and branded collections."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from macro_ledger.adapters.food_search_client import FoodSearchClient
from macro_ledger.domain.search import SearchFoodResult, ServingOption
from macro_ledger.services.cache import Cache
from macro_ledger.services.micros import CARBS, ENERGY, FAT, PROTEIN
from macro_ledger.services.schedule import (
    is_nutrient_code,
    number_field,
    string_field,
)

_logger = logging.getLogger(__name__)


@dataclass
class FoodSearchService:
    """Searches foods and maps index hits to ``SearchFoodResult``."""

    client: FoodSearchClient
    cache: Cache
    common_collection: str = "common_foods"
    branded_collection: str = "branded_foods"
    ttl_seconds: int = 3600

    async def search(self, query: str, limit: int = 10) -> list[SearchFoodResult]:
        """Search both collections; common foods are listed first."""
        cache_key = f"search:{query.strip().lower()}:{limit}"
        cached = self.cache.get(cache_key)
        if isinstance(cached, list):
            return cached

        collections = [self.common_collection, self.branded_collection]
        hit_lists = await self.client.multi_search(query, collections, per_page=limit)
        results: list[SearchFoodResult] = []
        for collection, hits in zip(collections, hit_lists, strict=False):
            branded = collection == self.branded_collection
            for hit in hits:
                result = parse_hit(hit, branded=branded)
                if result is not None:
                    results.append(result)
        _logger.info("Food search: query=%s results=%s", query, len(results))
        self.cache.set(cache_key, results, ttl_seconds=self.ttl_seconds)
        return results


def parse_hit(hit: Mapping[str, object], *, branded: bool) -> SearchFoodResult | None:
    """Map one search hit; hits without an id or description are skipped."""
    food_id = hit.get("id")
    name = string_field(hit, "foodDesc")
    if food_id is None or not name:
        return None
    servings = [
        serving
        for serving in (_parse_serving(raw) for raw in _as_list(hit.get("weights")))
        if serving is not None
    ]
    nutrients: dict[str, float] = {}
    for key in hit:
        if not is_nutrient_code(key) or key in {ENERGY, PROTEIN, CARBS, FAT}:
            continue
        value = number_field(hit, key)
        if value is not None:
            nutrients[key] = value
    return SearchFoodResult(
        food_id=str(food_id),
        name=name,
        brand=string_field(hit, "brandName"),
        calories_per_100g=number_field(hit, ENERGY) or 0.0,
        protein_per_100g=number_field(hit, PROTEIN) or 0.0,
        carbs_per_100g=number_field(hit, CARBS) or 0.0,
        fat_per_100g=number_field(hit, FAT) or 0.0,
        servings=servings,
        default_serving=_default_serving(hit.get("dfSrv"), servings),
        branded=branded,
        image_id=string_field(hit, "imageId"),
        source=string_field(hit, "source"),
        nutrients_per_100g=nutrients,
    )


def _parse_serving(raw: object) -> ServingOption | None:
    if not isinstance(raw, Mapping):
        return None
    description = string_field(raw, "m") or string_field(raw, "description")
    amount = number_field(raw, "q")
    if amount is None:
        amount = number_field(raw, "amount")
    gram_weight = number_field(raw, "w")
    if gram_weight is None:
        gram_weight = number_field(raw, "gramWeight")
    if not description or gram_weight is None or gram_weight <= 0:
        return None
    if amount is None or amount <= 0:
        amount = 1.0
    return ServingOption(
        description=description, amount=amount, gram_weight=gram_weight
    )


def _default_serving(
    raw: object, servings: list[ServingOption]
) -> ServingOption | None:
    if isinstance(raw, Mapping):
        return _parse_serving(raw)
    if isinstance(raw, int) and not isinstance(raw, bool):
        return servings[raw] if 0 <= raw < len(servings) else None
    if isinstance(raw, str):
        for serving in servings:
            if serving.description == raw:
                return serving
    return servings[0] if servings else None


def _as_list(value: object) -> list[object]:
    return value if isinstance(value, list) else []
