"""Daily nutrient summary recomputation."""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date

from macro_ledger.adapters.firestore_client import FirestoreGateway, quote_field_path
from macro_ledger.domain.records import FoodEntry, consumption_multiplier
from macro_ledger.domain.values import encode_fields
from macro_ledger.errors import NotFoundError
from macro_ledger.services.schedule import (
    day_bucket_path,
    food_entries_from_fields,
    is_nutrient_code,
    mmdd,
    number_field,
    year_bucket_path,
)

ENERGY = "208"
PROTEIN = "203"
FAT = "204"
CARBS = "205"
MACRO_CODES = (ENERGY, PROTEIN, CARBS, FAT)

# USDA nutrient numbers always present in a written summary.
MICRO_CODES = (
    "209",  # starch
    "210",  # sucrose
    "211",  # glucose
    "212",  # fructose
    "213",  # lactose
    "214",  # maltose
    "221",  # alcohol
    "255",  # water
    "262",  # caffeine
    "269",  # total sugars
    "287",  # galactose
    "291",  # fiber
    "301",  # calcium
    "303",  # iron
    "304",  # magnesium
    "305",  # phosphorus
    "306",  # potassium
    "307",  # sodium
    "309",  # zinc
    "312",  # copper
    "315",  # manganese
    "317",  # selenium
    "320",  # vitamin A, RAE
    "323",  # vitamin E
    "328",  # vitamin D
    "401",  # vitamin C
    "404",  # thiamin
    "405",  # riboflavin
    "406",  # niacin
    "410",  # pantothenic acid
    "415",  # vitamin B6
    "417",  # folate
    "418",  # vitamin B12
    "421",  # choline
    "430",  # vitamin K
    "501",  # tryptophan
    "502",  # threonine
    "503",  # isoleucine
    "504",  # leucine
    "505",  # lysine
    "506",  # methionine
    "507",  # cystine
    "508",  # phenylalanine
    "509",  # tyrosine
    "510",  # valine
    "512",  # histidine
    "539",  # added sugars
    "601",  # cholesterol
    "605",  # trans fat
    "606",  # saturated fat
    "645",  # monounsaturated fat
    "646",  # polyunsaturated fat
)

_MICRO_SET = frozenset(MICRO_CODES)
_MACRO_SET = frozenset(MACRO_CODES)

_logger = logging.getLogger(__name__)


def summarize_day(
    entries: Iterable[FoodEntry], raw_fields: Mapping[str, object]
) -> dict[str, float | None]:
    """Compute the per-day nutrient summary for a day bucket.

    Macro totals come from the live entries' consumed amounts. Micronutrients
    are re-read from the raw bucket and scaled by each entry's own multiplier.
    Every known code is present; codes with no contribution are ``None``.
    """
    macros = {code: 0.0 for code in MACRO_CODES}
    for entry in entries:
        if not entry.is_live():
            continue
        for code, amount in (
            (ENERGY, entry.calories()),
            (PROTEIN, entry.protein()),
            (CARBS, entry.carbs()),
            (FAT, entry.fat()),
        ):
            if amount is not None:
                macros[code] += amount

    micros: dict[str, float] = {}
    for key, value in raw_fields.items():
        if key.startswith("_") or not isinstance(value, Mapping):
            continue
        if value.get("d") is True:
            continue
        factor = consumption_multiplier(
            number_field(value, "g"), number_field(value, "y"), number_field(value, "w")
        )
        for code in value:
            if not is_nutrient_code(code) or code in _MACRO_SET:
                continue
            amount = number_field(value, code)
            if amount is None:
                continue
            scaled = amount * factor if factor is not None else amount
            micros[code] = micros.get(code, 0.0) + scaled

    unknown = sorted(set(micros) - _MICRO_SET)
    if unknown:
        _logger.debug("Dropping nutrient codes outside the summary set: %s", unknown)

    summary: dict[str, float | None] = dict(macros)
    for code in MICRO_CODES:
        summary[code] = micros.get(code)
    return summary


@dataclass
class MicroSyncService:
    """Rewrites the daily nutrient summary from a day's food log."""

    gateway: FirestoreGateway

    async def sync_day(self, uid: str, day: date) -> dict[str, float | None]:
        """Recompute and store the summary for ``day``; returns what was written."""
        try:
            document = await self.gateway.get_document(day_bucket_path(uid, day))
            raw_fields = document.decoded_fields()
        except NotFoundError:
            raw_fields = {}
        entries = food_entries_from_fields(day, raw_fields)
        summary = summarize_day(entries, raw_fields)
        key = mmdd(day)
        await self.gateway.patch_document(
            year_bucket_path(uid, "micro", day.year),
            encode_fields({key: summary}),
            [quote_field_path(key)],
        )
        _logger.info(
            "Synced micro summary for %s (%s entries)",
            day.isoformat(),
            sum(1 for entry in entries if entry.is_live()),
        )
        return summary
