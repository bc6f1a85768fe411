"""Freezer inventory snapshots read from markdown or JSON files."""

import json
import logging
import re
from pathlib import Path
from typing import Optional

import frontmatter

from .models import InventoryItem, ShoppingListEntry, coerce_stock, ingredient_key

logger = logging.getLogger(__name__)


# Category keywords for items listed outside a "## Category" section.
# Matched as whole words, with an optional plural ending.
CATEGORY_KEYWORDS = {
    "vegetables": [
        "pea", "carrot", "squash", "sweet potato", "potato", "broccoli",
        "spinach", "zucchini", "green bean", "cauliflower", "kale", "corn",
        "parsnip", "beet", "pumpkin",
    ],
    "fruits": [
        "apple", "pear", "banana", "mango", "peach", "plum", "prune",
        "blueberry", "blueberries", "strawberry", "strawberries", "avocado",
        "apricot", "cherry", "cherries",
    ],
    "grains": ["oat", "oatmeal", "rice", "quinoa", "barley", "millet", "pasta"],
    "proteins": [
        "chicken", "beef", "turkey", "lamb", "fish", "salmon", "lentil",
        "bean", "tofu", "egg", "chickpea",
    ],
    "dairy": ["yogurt", "cheese", "milk"],
}

SKIP_SECTIONS = {"format guide", "format", "guide", "notes", "instructions"}


def categorize_ingredient(name: str) -> str:
    """Determine the category of an ingredient."""
    name_lower = ingredient_key(name)

    for category, keywords in CATEGORY_KEYWORDS.items():
        if any(re.search(rf"\b{re.escape(kw)}(e?s)?\b", name_lower) for kw in keywords):
            return category

    return "other"


def _parse_inventory_line(line: str) -> Optional[tuple[str, int]]:
    """Parse "- Pea, 5 cubes", "- Pea (5)" or "- 5 Pea" into (name, cubes)."""
    line = re.sub(r"^[-*]\s*(\[.\])?\s*", "", line).strip()
    if not line:
        return None

    match = re.match(r"^(.+?),\s*([\d.]+)\s*(cubes?)?\s*$", line, re.IGNORECASE)
    if match:
        return match.group(1).strip(), coerce_stock(match.group(2))

    match = re.match(r"^(.+?)\s*\(\s*([\d.]+)\s*(cubes?)?\s*\)\s*$", line, re.IGNORECASE)
    if match:
        return match.group(1).strip(), coerce_stock(match.group(2))

    match = re.match(r"^([\d.]+)\s+(cubes?\s+(?:of\s+)?)?(.+)$", line, re.IGNORECASE)
    if match:
        return match.group(3).strip(), coerce_stock(match.group(1))

    # No count given: listed but out of stock
    return line, 0


class Inventory:
    """A read-only snapshot of the freezer inventory."""

    def __init__(self, items: Optional[list[InventoryItem]] = None):
        self.items: dict[str, InventoryItem] = {}
        self.categories: dict[str, str] = {}
        self.updated: Optional[str] = None
        for item in items or []:
            self.add(item)

    def add(self, item: InventoryItem, category: Optional[str] = None):
        """Add an item, combining cubes with an existing record of the same key."""
        if not item.key:
            return
        if item.key in self.items:
            self.items[item.key].cubes_left += item.cubes_left
        else:
            self.items[item.key] = InventoryItem(id=item.id, name=item.name, cubes_left=item.cubes_left)
            self.categories[item.key] = category or categorize_ingredient(item.name)

    @classmethod
    def load(cls, path: Path) -> "Inventory":
        """Load an inventory from a `.json` file or a markdown file with frontmatter."""
        path = Path(path)
        if path.suffix.lower() == ".json":
            inventory = cls._load_json(path)
        else:
            inventory = cls._load_markdown(path)
        logger.info("Loaded %d inventory items from %s", len(inventory.items), path)
        return inventory

    @classmethod
    def _load_json(cls, path: Path) -> "Inventory":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict):
            data = data.get("inventory", [])
        inventory = cls()
        for record in data if isinstance(data, list) else []:
            if isinstance(record, dict):
                inventory.add(InventoryItem.from_dict(record), record.get("category"))
        return inventory

    @classmethod
    def _load_markdown(cls, path: Path) -> "Inventory":
        post = frontmatter.load(str(path))
        inventory = cls()
        updated = post.metadata.get("updated")
        inventory.updated = str(updated) if updated else None

        current_category = None
        skip_section = False

        for line in post.content.split("\n"):
            line = line.strip()

            # Check for category headers
            if line.startswith("## "):
                current_category = line[3:].strip().lower()
                skip_section = current_category in SKIP_SECTIONS
                continue

            if skip_section:
                continue

            if line.startswith("- ") or line.startswith("* "):
                parsed = _parse_inventory_line(line)
                if parsed:
                    name, cubes = parsed
                    inventory.add(
                        InventoryItem(
                            id=ingredient_key(name).replace(" ", "-"),
                            name=name,
                            cubes_left=cubes,
                        ),
                        current_category,
                    )

        return inventory

    def all_items(self) -> list[InventoryItem]:
        return list(self.items.values())

    @property
    def total_cubes(self) -> int:
        return sum(item.cubes_left for item in self.items.values())

    def get_by_category(self, category: str) -> list[InventoryItem]:
        """Get all items in a category."""
        return [item for key, item in self.items.items() if self.categories.get(key) == category]

    def get_out_of_stock(self) -> list[InventoryItem]:
        return [item for item in self.items.values() if not item.in_stock]

    def get_stats(self) -> dict:
        """Get statistics about the inventory."""
        by_category: dict[str, int] = {}
        for key in self.items:
            cat = self.categories.get(key) or "other"
            by_category[cat] = by_category.get(cat, 0) + 1

        return {
            "total_items": len(self.items),
            "total_cubes": self.total_cubes,
            "out_of_stock": len(self.get_out_of_stock()),
            "by_category": by_category,
        }


def load_shopping_list(path: Path) -> list[ShoppingListEntry]:
    """Load an existing shopping list from JSON or a markdown checklist."""
    path = Path(path)
    if path.suffix.lower() == ".json":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict):
            data = data.get("shoppingList", data.get("items", []))
        return [
            ShoppingListEntry.from_dict(record)
            for record in (data if isinstance(data, list) else [])
            if isinstance(record, dict)
        ]

    post = frontmatter.load(str(path))
    entries = []
    for line in post.content.split("\n"):
        line = line.strip()
        if not (line.startswith("- ") or line.startswith("* ")):
            continue
        name = re.sub(r"^[-*]\s*(\[.\])?\s*", "", line).strip()
        # "Apple, 2 (reason)" -> "Apple"
        name = re.split(r",|\(", name, maxsplit=1)[0].strip()
        if name:
            entries.append(ShoppingListEntry(name=name))
    return entries


def create_sample_inventory(inventory_path: Path):
    """Create a sample inventory file with common baby-food cubes."""
    sample_content = """---
tags: [inventory, freezer]
updated: 2026-10-01
---

# Freezer Inventory

Track cubes on hand. Format: `- Item name, cubes`

## Vegetables
- Pea, 6
- Carrot, 8
- Butternut squash, 5
- Sweet potato, 4
- Broccoli, 0

## Fruits
- Apple, 6
- Pear, 4
- Mango, 3

## Grains
- Oatmeal, 5

## Proteins
- Chicken, 4
- Lentils, 3
"""

    with open(inventory_path, "w", encoding="utf-8") as f:
        f.write(sample_content)

    logger.info("Created sample inventory at %s", inventory_path)
