"""Data models for CubePlanner."""

import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class MealType(Enum):
    """Canonical meal types. Free-text meal types are still accepted."""
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"


MEAL_TYPE_ORDER = {m.value: i for i, m in enumerate(MealType)}


def ingredient_key(name) -> str:
    """Identity key for an ingredient: trimmed, whitespace-collapsed, case-folded."""
    if not isinstance(name, str):
        return ""
    return re.sub(r"\s+", " ", name.strip()).casefold()


def matches_allergen(name, allergens) -> bool:
    """True when an allergen appears in `name` as a whole word (plurals included).

    "egg" matches "Egg yolk" and "eggs", not "Eggplant".
    """
    key = ingredient_key(name)
    if not key:
        return False
    for allergen in allergens or []:
        allergen_key = ingredient_key(allergen)
        if allergen_key and re.search(rf"\b{re.escape(allergen_key)}(e?s)?\b", key):
            return True
    return False


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def _to_number(value) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def coerce_cubes(value) -> int:
    """Coerce a portion count to a positive integer (missing/invalid/zero -> 1)."""
    number = _to_number(value)
    if number is None or number <= 0:
        return 1
    return max(1, round_half_up(number))


def coerce_stock(value) -> int:
    """Coerce an inventory count to a non-negative integer (invalid -> 0)."""
    number = _to_number(value)
    if number is None or number <= 0:
        return 0
    return round_half_up(number)


@dataclass
class InventoryItem:
    """One food item physically on hand."""
    id: str
    name: str
    cubes_left: int = 0

    @property
    def key(self) -> str:
        return ingredient_key(self.name)

    @property
    def in_stock(self) -> bool:
        return self.cubes_left > 0

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "cubesLeft": self.cubes_left}

    @classmethod
    def from_dict(cls, data: dict) -> "InventoryItem":
        name = data.get("name")
        name = name.strip() if isinstance(name, str) else ""
        item_id = data.get("id")
        return cls(
            id=str(item_id) if item_id is not None else ingredient_key(name).replace(" ", "-"),
            name=name,
            cubes_left=coerce_stock(data.get("cubesLeft", data.get("cubes_left"))),
        )


@dataclass
class MealItem:
    """One ingredient entry inside a meal."""
    name: str
    cubes: int = 1

    @property
    def key(self) -> str:
        return ingredient_key(self.name)

    def to_dict(self) -> dict:
        return {"name": self.name, "cubes": self.cubes}


@dataclass
class Meal:
    """One feeding occasion."""
    meal_type: str
    items: list[MealItem] = field(default_factory=list)
    spices: list = field(default_factory=list)
    # Free text from meal-idea style answers; serialized only when present
    title: str = ""
    recipe: str = ""
    notes: str = ""

    @property
    def total_cubes(self) -> int:
        return sum(item.cubes for item in self.items)

    def to_dict(self) -> dict:
        data = {
            "mealType": self.meal_type,
            "items": [item.to_dict() for item in self.items],
            "spices": list(self.spices),
        }
        for key in ("title", "recipe", "notes"):
            if getattr(self, key):
                data[key] = getattr(self, key)
        return data


@dataclass
class DayPlan:
    """One calendar day of meals."""
    date: str
    meals: list[Meal] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"date": self.date, "meals": [meal.to_dict() for meal in self.meals]}


@dataclass
class Plan:
    """A normalized meal plan."""
    days: list[DayPlan] = field(default_factory=list)
    # Meals removed because they could not reach the exact ingredient count
    dropped_meals: int = field(default=0, compare=False)

    @property
    def meal_count(self) -> int:
        return sum(len(day.meals) for day in self.days)

    def get_cube_usage(self) -> dict[str, int]:
        """Total cubes per ingredient key across the whole plan."""
        usage: dict[str, int] = {}
        for day in self.days:
            for meal in day.meals:
                for item in meal.items:
                    usage[item.key] = usage.get(item.key, 0) + item.cubes
        return usage

    def to_dict(self) -> dict:
        return {"days": [day.to_dict() for day in self.days]}


@dataclass
class PlanConstraints:
    """Hard constraints enforced on every meal of a plan."""
    exact_ingredient_count: int = 3
    only_inventory: bool = True
    target_cubes_per_meal: Optional[int] = None
    avoid_allergens: list[str] = field(default_factory=list)

    @property
    def has_count(self) -> bool:
        return self.exact_ingredient_count > 0

    @property
    def has_target(self) -> bool:
        return bool(self.target_cubes_per_meal) and self.target_cubes_per_meal > 0


@dataclass
class ShoppingSuggestion:
    """An item the model suggests buying."""
    name: str
    quantity: int = 1
    reason: str = ""

    @property
    def key(self) -> str:
        return ingredient_key(self.name)

    def to_dict(self) -> dict:
        return {"name": self.name, "quantity": self.quantity, "reason": self.reason}


@dataclass
class ShoppingListEntry:
    """An item already on the household shopping list."""
    name: str
    id: Optional[str] = None

    @property
    def key(self) -> str:
        return ingredient_key(self.name)

    @classmethod
    def from_dict(cls, data: dict) -> "ShoppingListEntry":
        item_id = data.get("id")
        name = data.get("name")
        return cls(
            name=name if isinstance(name, str) else "",
            id=str(item_id) if item_id is not None else None,
        )
