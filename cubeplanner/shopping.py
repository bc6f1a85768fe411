"""Deficit-driven shopping suggestions."""

import logging
import math
from datetime import datetime
from typing import Iterable, Optional, Union

from .config import Config
from .errors import UpstreamUnavailable
from .llm import GeminiClient
from .models import (
    InventoryItem, ShoppingListEntry, ShoppingSuggestion,
    coerce_cubes, ingredient_key, matches_allergen, round_half_up,
)
from .normalizer import build_inventory_index
from .parser import parse_shopping_response

logger = logging.getLogger(__name__)


def total_inventory_cubes(inventory: Iterable[Union[InventoryItem, dict]]) -> int:
    """Sum of cubes left across the inventory."""
    return sum(item.cubes_left for item in build_inventory_index(inventory).values())


def compute_deficit(inventory_total_cubes: float, days_to_cover: float, per_day_cubes: float) -> int:
    """
    Cubes still needed to cover `days_to_cover` days at `per_day_cubes` a day.

    Raises ValueError when the requested total is not a finite number.
    """
    needed = float(days_to_cover) * float(per_day_cubes)
    if not math.isfinite(needed):
        raise ValueError(f"Cannot cover {days_to_cover} days at {per_day_cubes} cubes/day")
    target = max(0, round_half_up(needed))
    return max(0, target - int(inventory_total_cubes))


def _entry_key(entry) -> str:
    if isinstance(entry, ShoppingListEntry):
        return entry.key
    if isinstance(entry, dict):
        return ingredient_key(entry.get("name"))
    return ingredient_key(entry)


def filter_suggestions(
    raw_items: Iterable,
    shopping_list: Iterable = (),
    avoid_allergens: Iterable[str] = (),
    max_items: Optional[int] = None,
) -> list[ShoppingSuggestion]:
    """
    Clean up model suggestions against the existing shopping list.

    Drops nameless items, items already on the list and items naming an
    avoided allergen; keeps the first of any duplicates; coerces quantity to
    a positive integer.
    """
    already = {_entry_key(entry) for entry in shopping_list}
    already.discard("")
    allergens = list(avoid_allergens or [])

    seen = set()
    results = []
    for raw in raw_items or []:
        if not isinstance(raw, dict):
            continue
        name = raw.get("name")
        key = ingredient_key(name)
        if not key or key in already or key in seen:
            continue
        if matches_allergen(key, allergens):
            logger.debug("Dropping suggestion %r: matches avoided allergen", name)
            continue
        seen.add(key)

        reason = raw.get("reason")
        results.append(ShoppingSuggestion(
            name=name.strip(),
            quantity=coerce_cubes(raw.get("quantity")),
            reason=reason if isinstance(reason, str) else "",
        ))

        if max_items and len(results) >= max_items:
            break

    return results


class ShoppingAdvisor:
    """Asks Gemini what to buy when the freezer cannot cover the coming days."""

    def __init__(self, config: Config, client=None):
        self.config = config
        self.client = client

    def _get_client(self):
        if self.client is None:
            if not self.config.has_api_key:
                raise UpstreamUnavailable("Missing GEMINI_API_KEY on server")
            self.client = GeminiClient.from_config(self.config)
        return self.client

    def _build_prompt(
        self,
        deficit: int,
        days_to_cover: float,
        per_day_cubes: float,
        avoid_allergens: list[str],
    ) -> str:
        return f"""You are a baby shopping assistant. Return STRICT JSON only (no prose, no code fences).

Schema:
{{
  "items": [
    {{ "name": "string", "quantity": number, "reason": "string" }}
  ]
}}

Rules:
- Recommend items to cover a deficit of about {deficit} cubes over {days_to_cover} days (about {per_day_cubes}/day).
- DO NOT include any item already present on the current shopping list (case-insensitive).
- Prefer variety across vegetables, fruits, grains, and proteins (baby-appropriate).
- Keep sodium low; no added sugar. No honey if under 12 months.
- Avoid allergens in this list: {", ".join(avoid_allergens) or "none"}.
- Reason should be short (why it's a good pick).
- Return only the JSON object described above."""

    def suggest(
        self,
        inventory: Iterable[Union[InventoryItem, dict]],
        days_to_cover: Optional[float] = None,
        per_day_cubes: Optional[float] = None,
        shopping_list: Iterable = (),
        avoid_allergens: Optional[Iterable[str]] = None,
    ) -> list[ShoppingSuggestion]:
        """
        Suggest items to buy. Returns an empty list, without calling the
        model, when the inventory already covers the requested days.
        """
        defaults = self.config.shopping_defaults
        if days_to_cover is None:
            days_to_cover = defaults.days_to_cover
        if per_day_cubes is None:
            per_day_cubes = defaults.per_day_cubes
        if avoid_allergens is None:
            avoid_allergens = defaults.avoid_allergens
        avoid_allergens = [a for a in avoid_allergens if isinstance(a, str) and a.strip()]

        items = list(build_inventory_index(inventory).values())
        shopping_list = list(shopping_list)
        on_hand = sum(item.cubes_left for item in items)
        deficit = compute_deficit(on_hand, days_to_cover, per_day_cubes)

        if deficit == 0:
            logger.info("Inventory (%d cubes) covers %s days; no suggestions needed", on_hand, days_to_cover)
            return []

        system = self._build_prompt(deficit, days_to_cover, per_day_cubes, avoid_allergens)
        payload = {
            "daysToCover": days_to_cover,
            "perDayCubes": per_day_cubes,
            "deficit": deficit,
            "inventory": [item.to_dict() for item in items],
            "shoppingList": [
                {"name": e.name} if isinstance(e, ShoppingListEntry) else e
                for e in shopping_list
            ],
        }

        logger.info("Requesting shopping suggestions for a %d-cube deficit", deficit)
        text = self._get_client().complete(system, payload)
        data = parse_shopping_response(text)
        raw_items = data.get("items") if isinstance(data.get("items"), list) else data.get("shopping")

        return filter_suggestions(
            raw_items,
            shopping_list=shopping_list,
            avoid_allergens=avoid_allergens,
            max_items=defaults.max_suggestions,
        )


def to_markdown(suggestions: list[ShoppingSuggestion]) -> str:
    """Convert suggestions to an Obsidian-friendly markdown checklist."""
    lines = [
        "---",
        "tags: [shopping, baby-food]",
        f"created: {datetime.now().strftime('%Y-%m-%d')}",
        "---",
        "",
        "# 🛒 Shopping List",
        "",
    ]

    if not suggestions:
        lines.append("_Nothing to buy: the freezer covers the coming days._")
        return "\n".join(lines)

    lines.append(f"**{len(suggestions)} items** to buy")
    lines.append("")
    for item in suggestions:
        reason = f" ({item.reason})" if item.reason else ""
        lines.append(f"- [ ] {item.name}, {item.quantity}{reason}")

    return "\n".join(lines)
