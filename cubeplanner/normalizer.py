"""Constraint enforcement for model-generated meal plans.

The model is asked for an exact number of ingredients per meal, drawn only
from the freezer inventory, adding up to a target number of cubes. It does
not always comply. ``normalize_plan`` rewrites every meal so that it does,
or drops the meal when it cannot be repaired.
"""

import logging
from datetime import date, timedelta
from typing import Iterable, Optional, Union

from .models import (
    DayPlan, InventoryItem, Meal, MealItem, Plan, PlanConstraints,
    coerce_cubes, ingredient_key, matches_allergen,
)

logger = logging.getLogger(__name__)

InventoryIndex = dict[str, InventoryItem]


def build_inventory_index(inventory: Iterable[Union[InventoryItem, dict]]) -> InventoryIndex:
    """Map ingredient key -> inventory item for a single call.

    Records sharing a key are combined: cubes are summed and the first
    record's id and display name are kept. Nameless records are ignored.
    """
    index: InventoryIndex = {}
    for raw in inventory or []:
        if isinstance(raw, InventoryItem):
            item = raw
        elif isinstance(raw, dict):
            item = InventoryItem.from_dict(raw)
        else:
            continue

        if not item.key:
            continue

        existing = index.get(item.key)
        if existing is None:
            index[item.key] = InventoryItem(id=item.id, name=item.name, cubes_left=item.cubes_left)
        else:
            existing.cubes_left += item.cubes_left
    return index


def _read_items(meal_data: dict) -> list[MealItem]:
    raw_items = meal_data.get("items")
    if raw_items is None:
        raw_items = meal_data.get("uses")
    if not isinstance(raw_items, list):
        return []

    items = []
    for entry in raw_items:
        if isinstance(entry, str):
            name, cubes = entry, None
        elif isinstance(entry, dict):
            name, cubes = entry.get("name"), entry.get("cubes")
        else:
            continue
        if not ingredient_key(name):
            continue
        items.append(MealItem(name=name.strip(), cubes=coerce_cubes(cubes)))
    return items


def _read_spices(meal_data: dict) -> list:
    spices = meal_data.get("spices")
    if isinstance(spices, list):
        return list(spices)
    if isinstance(spices, str) and spices:
        return [spices]
    spice = meal_data.get("spice")
    if isinstance(spice, str) and spice:
        return [spice]
    return []


def _read_text(meal_data: dict, key: str) -> str:
    value = meal_data.get(key)
    return value.strip() if isinstance(value, str) else ""


def _read_meal_type(meal_data: dict) -> str:
    value = meal_data.get("mealType", meal_data.get("meal_type"))
    if value is None:
        return ""
    return str(value).strip().lower()


def filter_to_inventory(items: list[MealItem], index: InventoryIndex) -> list[MealItem]:
    """Drop items whose ingredient is not in the inventory."""
    return [item for item in items if item.key in index]


def merge_duplicates(items: list[MealItem], index: InventoryIndex) -> list[MealItem]:
    """Collapse items sharing an ingredient key, summing their cubes.

    First occurrence sets the position. Known ingredients take the
    inventory's display name.
    """
    merged: dict[str, MealItem] = {}
    for item in items:
        if item.key in merged:
            merged[item.key].cubes += item.cubes
            continue
        name = index[item.key].name if item.key in index else item.name
        merged[item.key] = MealItem(name=name, cubes=item.cubes)

    for item in merged.values():
        item.cubes = max(1, item.cubes)
    return list(merged.values())


def fit_to_count(
    items: list[MealItem],
    index: InventoryIndex,
    count: int,
    avoid_allergens: Iterable[str] = (),
) -> Optional[list[MealItem]]:
    """
    Trim or pad a meal to exactly `count` distinct ingredients.

    Extra items are cut from the end so the model's ordering is kept. Missing
    items are filled from unused in-stock inventory, one cube each, in
    inventory order, skipping avoided allergens. Returns None when the
    inventory runs out first.
    """
    if len(items) > count:
        return items[:count]

    fitted = list(items)
    used = {item.key for item in fitted}
    for key, stock in index.items():
        if len(fitted) >= count:
            break
        if key in used or not stock.in_stock:
            continue
        if matches_allergen(stock.name, avoid_allergens):
            continue
        fitted.append(MealItem(name=stock.name, cubes=1))
        used.add(key)

    if len(fitted) != count:
        return None
    return fitted


def rebalance_cubes(items: list[MealItem], index: InventoryIndex, target: int) -> list[MealItem]:
    """
    Move the meal's cube total toward `target`, one cube at a time, round-robin.

    Decrements never take an item below 1 cube. Increments never take an
    item above its inventory `cubesLeft`. Each pass either moves the total
    by at least one cube or ends the loop.
    """
    total = sum(item.cubes for item in items)

    while total > target:
        changed = False
        for item in items:
            if total <= target:
                break
            if item.cubes > 1:
                item.cubes -= 1
                total -= 1
                changed = True
        if not changed:
            break

    while total < target:
        changed = False
        for item in items:
            if total >= target:
                break
            available = index[item.key].cubes_left if item.key in index else 0
            if item.cubes < available:
                item.cubes += 1
                total += 1
                changed = True
        if not changed:
            break

    return items


def normalize_meal(
    meal_data: dict,
    index: InventoryIndex,
    constraints: PlanConstraints,
) -> Optional[Meal]:
    """Normalize one meal. Returns None when the meal has to be dropped."""
    items = _read_items(meal_data)

    if constraints.avoid_allergens:
        items = [i for i in items if not matches_allergen(i.name, constraints.avoid_allergens)]

    if constraints.only_inventory:
        items = filter_to_inventory(items, index)

    items = merge_duplicates(items, index)

    if constraints.has_count:
        items = fit_to_count(
            items, index, constraints.exact_ingredient_count, constraints.avoid_allergens,
        )
        if items is None:
            return None

    if not items:
        return None

    if constraints.has_target:
        items = rebalance_cubes(items, index, constraints.target_cubes_per_meal)

    return Meal(
        meal_type=_read_meal_type(meal_data),
        items=items,
        spices=_read_spices(meal_data),
        title=_read_text(meal_data, "title"),
        recipe=_read_text(meal_data, "recipe"),
        notes=_read_text(meal_data, "notes"),
    )


def _resolve_date(value, position: int, start_date: Optional[date]) -> str:
    if isinstance(value, str) and value.strip():
        try:
            date.fromisoformat(value.strip())
            return value.strip()
        except ValueError:
            pass
    if start_date is not None:
        return (start_date + timedelta(days=position)).isoformat()
    return value.strip() if isinstance(value, str) else ""


def normalize_plan(
    plan: Union[dict, Plan],
    inventory: Iterable[Union[InventoryItem, dict]],
    constraints: PlanConstraints,
    start_date: Optional[date] = None,
) -> Plan:
    """
    Rewrite a parsed plan so every meal satisfies `constraints`.

    Meals that cannot reach the exact ingredient count, or are left with no
    ingredients at all, are dropped. Days are always kept, even when none of
    their meals survive. Missing or invalid dates are filled from
    `start_date` when one is given.
    """
    if isinstance(plan, Plan):
        plan = plan.to_dict()

    index = build_inventory_index(inventory)

    raw_days = plan.get("days")
    if not isinstance(raw_days, list):
        raw_days = plan.get("plans")
    if not isinstance(raw_days, list):
        raw_days = []

    days = []
    dropped = 0
    for position, day_data in enumerate(raw_days):
        if not isinstance(day_data, dict):
            logger.warning("Skipping non-object day entry at position %d", position)
            continue

        day = DayPlan(date=_resolve_date(day_data.get("date"), position, start_date))
        raw_meals = day_data.get("meals")
        for meal_data in raw_meals if isinstance(raw_meals, list) else []:
            if not isinstance(meal_data, dict):
                continue
            meal = normalize_meal(meal_data, index, constraints)
            if meal is None:
                dropped += 1
                logger.debug(
                    "Dropped %s meal on %s: no usable ingredients (need %d)",
                    _read_meal_type(meal_data) or "untyped", day.date,
                    constraints.exact_ingredient_count,
                )
                continue
            day.meals.append(meal)
        days.append(day)

    result = Plan(days=days, dropped_meals=dropped)
    logger.info(
        "Normalized plan: %d days, %d meals kept, %d dropped",
        len(days), result.meal_count, dropped,
    )
    return result


def find_violations(
    plan: Plan,
    inventory: Iterable[Union[InventoryItem, dict]],
    constraints: PlanConstraints,
) -> list[str]:
    """List every way `plan` breaks the count, membership or uniqueness rules."""
    index = build_inventory_index(inventory)
    problems = []

    for day in plan.days:
        for meal in day.meals:
            label = f"{day.date} {meal.meal_type or 'meal'}"
            keys = [item.key for item in meal.items]

            if constraints.has_count and len(keys) != constraints.exact_ingredient_count:
                problems.append(
                    f"{label}: {len(keys)} ingredients, expected {constraints.exact_ingredient_count}"
                )
            if len(set(keys)) != len(keys):
                problems.append(f"{label}: duplicate ingredients")
            if constraints.only_inventory:
                for item in meal.items:
                    if item.key not in index:
                        problems.append(f"{label}: {item.name} is not in inventory")
            for item in meal.items:
                if item.cubes < 1:
                    problems.append(f"{label}: {item.name} has {item.cubes} cubes")
                if matches_allergen(item.name, constraints.avoid_allergens):
                    problems.append(f"{label}: {item.name} is an avoided allergen")

    return problems
