"""AI-powered baby meal planning using Google Gemini."""

import logging
from datetime import date
from typing import Iterable, Optional, Union

from .config import Config
from .errors import UpstreamUnavailable
from .llm import GeminiClient
from .models import InventoryItem, Plan, PlanConstraints
from .normalizer import build_inventory_index, find_violations, normalize_plan
from .parser import parse_plan_response

logger = logging.getLogger(__name__)

MILD_SPICES = ["cinnamon", "cumin", "turmeric", "garlic powder", "paprika"]


class MealPlanner:
    """Requests a plan from Gemini and repairs it to the caller's constraints."""

    def __init__(self, config: Config, client=None):
        self.config = config
        self.client = client

    def _get_client(self):
        if self.client is None:
            if not self.config.has_api_key:
                raise UpstreamUnavailable("Missing GEMINI_API_KEY on server")
            self.client = GeminiClient.from_config(self.config)
        return self.client

    def _build_inventory_context(self, inventory: list[InventoryItem]) -> str:
        """Build context string describing the freezer inventory."""
        if not inventory:
            return "FREEZER INVENTORY: (empty)"
        lines = ["FREEZER INVENTORY (name: cubes left):"]
        for item in inventory:
            lines.append(f"- {item.name}: {item.cubes_left}")
        return "\n".join(lines)

    def _build_planning_prompt(
        self,
        constraints: PlanConstraints,
        inventory: list[InventoryItem],
    ) -> str:
        """Build the system prompt for a meal plan request."""
        count = constraints.exact_ingredient_count
        count_rule = (
            f"- Use EXACTLY {count} ingredients per meal (no more, no less)."
            if constraints.has_count
            else "- Use as many ingredients per meal as makes sense."
        )
        cubes_rule = ""
        if constraints.has_target:
            cubes_rule = (
                f"\n- Target about {constraints.target_cubes_per_meal} cubes per meal "
                "(total across all ingredients)."
            )
        names = ", ".join(item.name for item in inventory)
        source_rule = (
            f"- Use ONLY these inventory items (case-insensitive): {names}. Do not invent items."
            if constraints.only_inventory
            else "- Prefer inventory items first."
        )
        allergen_rule = ""
        if constraints.avoid_allergens:
            allergen_rule = (
                "\n- Never use these allergens or foods containing them: "
                f"{', '.join(constraints.avoid_allergens)}. Prefer substitutions."
            )

        return f"""You are a baby meal planner. Output STRICT JSON only (no prose, no code fences).

Schema:
{{
  "days": [
    {{
      "date": "YYYY-MM-DD",
      "meals": [
        {{
          "mealType": "breakfast|lunch|dinner",
          "items": [ {{ "name": "string", "cubes": number }} ],
          "spices": [ "string" ],
          "title": "short name (optional)",
          "recipe": "1-3 short steps (optional)"
        }}
      ]
    }}
  ]
}}

Rules:
{count_rule}{cubes_rule}
{source_rule}{allergen_rule}
- Keep sodium low; no added sugar. No honey if under 12 months.
- Mild spices only: {", ".join(MILD_SPICES)}.

{self._build_inventory_context(inventory)}

Return exactly one JSON object matching the schema."""

    def generate_plan(
        self,
        inventory: Iterable[Union[InventoryItem, dict]],
        days: Optional[int] = None,
        constraints: Optional[PlanConstraints] = None,
        today: Optional[date] = None,
    ) -> Plan:
        """
        Ask the model for a plan and enforce the constraints on its answer.

        Raises UpstreamUnavailable when the model cannot be reached and
        MalformedResponse / BadShape when its answer is unusable.
        """
        defaults = self.config.plan_defaults
        days = days or defaults.days
        constraints = constraints or defaults.to_constraints()
        today = today or date.today()
        items = list(build_inventory_index(inventory).values())

        system = self._build_planning_prompt(constraints, items)
        payload = {
            "days": days,
            "perMealCubes": constraints.target_cubes_per_meal,
            "maxIngredients": constraints.exact_ingredient_count,
            "onlyInventory": constraints.only_inventory,
            "avoidAllergens": list(constraints.avoid_allergens),
            "inventory": [item.to_dict() for item in items],
            "today": today.isoformat(),
        }

        logger.info(
            "Requesting %d-day plan (%d ingredients/meal, %s cubes/meal, %d inventory items)",
            days, constraints.exact_ingredient_count,
            constraints.target_cubes_per_meal, len(items),
        )
        text = self._get_client().complete(system, payload)
        parsed = parse_plan_response(text)

        plan = normalize_plan(parsed, items, constraints, start_date=today)
        if plan.dropped_meals:
            logger.info("%d meals could not be repaired and were dropped", plan.dropped_meals)

        problems = find_violations(plan, items, constraints)
        if problems:
            # normalize_plan guarantees these; anything here is a bug
            logger.error("Normalized plan still violates constraints: %s", problems)
        return plan

    def get_plan_summary(self, plan: Plan) -> str:
        """Generate a markdown summary of the plan."""
        lines = ["# 🍼 Meal Plan", ""]

        for day in plan.days:
            lines.append(f"## {day.date or 'Undated'}")
            lines.append("")
            if not day.meals:
                lines.append("_No viable meals for this day._")
                lines.append("")
                continue
            for meal in day.meals:
                items = ", ".join(f"{item.name} ×{item.cubes}" for item in meal.items)
                spices = f" (spices: {', '.join(str(s) for s in meal.spices)})" if meal.spices else ""
                title = f" {meal.title}:" if meal.title else ""
                lines.append(f"- **{(meal.meal_type or 'meal').title()}**:{title} {items}{spices}")
            lines.append("")

        usage = plan.get_cube_usage()
        if usage:
            lines.append("## Cubes Used")
            lines.append("")
            for key, cubes in sorted(usage.items()):
                lines.append(f"- {key}: {cubes}")
            lines.append("")

        if plan.dropped_meals:
            lines.append(f"_{plan.dropped_meals} meal(s) dropped: not enough distinct ingredients in stock._")

        return "\n".join(lines)
