"""CubePlanner - baby food cube meal planning with constraint-checked AI plans."""

__version__ = "0.1.0"

# Lazy imports to avoid circular dependencies
def __getattr__(name):
    if name in ("Config", "PlanDefaults", "ShoppingDefaults"):
        from . import config
        return getattr(config, name)
    elif name in ("InventoryItem", "MealItem", "Meal", "DayPlan", "Plan",
                  "PlanConstraints", "ShoppingSuggestion", "ShoppingListEntry",
                  "MealType", "ingredient_key"):
        from . import models
        return getattr(models, name)
    elif name in ("CubePlannerError", "MalformedResponse", "BadShape", "UpstreamUnavailable"):
        from . import errors
        return getattr(errors, name)
    elif name in ("extract_json", "parse_plan_response", "parse_shopping_response"):
        from . import parser
        return getattr(parser, name)
    elif name in ("normalize_plan", "find_violations"):
        from . import normalizer
        return getattr(normalizer, name)
    elif name in ("compute_deficit", "filter_suggestions", "ShoppingAdvisor"):
        from . import shopping
        return getattr(shopping, name)
    elif name == "Inventory":
        from .inventory import Inventory
        return Inventory
    elif name == "MealPlanner":
        from .planner import MealPlanner
        return MealPlanner
    elif name == "create_app":
        from .server import create_app
        return create_app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = [
    "Config",
    "PlanDefaults",
    "ShoppingDefaults",
    "InventoryItem",
    "MealItem",
    "Meal",
    "DayPlan",
    "Plan",
    "PlanConstraints",
    "ShoppingSuggestion",
    "ShoppingListEntry",
    "MealType",
    "ingredient_key",
    "CubePlannerError",
    "MalformedResponse",
    "BadShape",
    "UpstreamUnavailable",
    "extract_json",
    "parse_plan_response",
    "parse_shopping_response",
    "normalize_plan",
    "find_violations",
    "compute_deficit",
    "filter_suggestions",
    "ShoppingAdvisor",
    "Inventory",
    "MealPlanner",
    "create_app",
]
