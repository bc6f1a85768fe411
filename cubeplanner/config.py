"""Configuration management for CubePlanner."""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional

from .models import PlanConstraints


@dataclass
class PlanDefaults:
    """Defaults for meal plan requests."""
    days: int = 3
    per_meal_cubes: int = 2
    max_ingredients: int = 3   # enforced as the exact ingredient count
    only_inventory: bool = True
    avoid_allergens: list[str] = field(default_factory=list)

    def __post_init__(self):
        """Validate defaults are usable."""
        if self.days < 1:
            raise ValueError("days must be at least 1")
        for field_name in ["per_meal_cubes", "max_ingredients"]:
            value = getattr(self, field_name)
            if value < 0:
                raise ValueError(f"{field_name} must be non-negative")

    def to_constraints(self) -> PlanConstraints:
        return PlanConstraints(
            exact_ingredient_count=self.max_ingredients,
            only_inventory=self.only_inventory,
            target_cubes_per_meal=self.per_meal_cubes or None,
            avoid_allergens=list(self.avoid_allergens),
        )


@dataclass
class ShoppingDefaults:
    """Defaults for shopping suggestion requests."""
    days_to_cover: int = 3
    per_day_cubes: int = 6     # e.g. 3 meals * 2 cubes
    max_suggestions: int = 20
    avoid_allergens: list[str] = field(default_factory=list)

    def __post_init__(self):
        for field_name in ["days_to_cover", "per_day_cubes", "max_suggestions"]:
            value = getattr(self, field_name)
            if value < 0:
                raise ValueError(f"{field_name} must be non-negative")


@dataclass
class Config:
    """Main application configuration."""
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    llm_timeout_seconds: float = 60.0

    # Optional paths
    inventory_path: Optional[Path] = None
    shopping_list_path: Optional[Path] = None

    # Server
    host: str = "127.0.0.1"
    port: int = 8787
    log_level: str = "INFO"

    # Nested configs
    plan_defaults: PlanDefaults = field(default_factory=PlanDefaults)
    shopping_defaults: ShoppingDefaults = field(default_factory=ShoppingDefaults)

    @property
    def has_api_key(self) -> bool:
        return bool(self.gemini_api_key)

    @classmethod
    def from_env(cls, dotenv_path: Optional[Path] = None) -> "Config":
        """Load configuration from environment variables."""
        # Load .env file if it exists - check multiple locations
        if dotenv_path is None:
            project_root = Path(__file__).parent.parent / ".env"
            package_dir = Path(__file__).parent / ".env"
            cwd = Path.cwd() / ".env"

            for path in [cwd, project_root, package_dir]:
                if path.exists():
                    dotenv_path = path
                    break

        if dotenv_path and dotenv_path.exists():
            with open(dotenv_path) as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith("#") and "=" in line:
                        key, value = line.split("=", 1)
                        os.environ.setdefault(key.strip(), value.strip().strip('"').strip("'"))

        inventory_path = os.environ.get("INVENTORY_PATH")
        shopping_list_path = os.environ.get("SHOPPING_LIST_PATH")

        allergens = os.environ.get("AVOID_ALLERGENS", "")
        avoid = [a.strip() for a in allergens.split(",") if a.strip()]

        return cls(
            gemini_api_key=os.environ.get("GEMINI_API_KEY", ""),
            gemini_model=os.environ.get("GEMINI_MODEL", "gemini-2.5-flash"),
            llm_timeout_seconds=float(os.environ.get("LLM_TIMEOUT_SECONDS", "60")),
            inventory_path=Path(inventory_path) if inventory_path else None,
            shopping_list_path=Path(shopping_list_path) if shopping_list_path else None,
            host=os.environ.get("HOST", "127.0.0.1"),
            port=int(os.environ.get("PORT", "8787")),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            plan_defaults=PlanDefaults(avoid_allergens=list(avoid)),
            shopping_defaults=ShoppingDefaults(avoid_allergens=list(avoid)),
        )

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if not self.gemini_api_key:
            errors.append("GEMINI_API_KEY is not set")

        if self.llm_timeout_seconds <= 0:
            errors.append("LLM_TIMEOUT_SECONDS must be positive")

        if self.inventory_path and not self.inventory_path.exists():
            errors.append(f"Inventory file does not exist: {self.inventory_path}")

        return errors
