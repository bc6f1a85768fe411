"""Shared fixtures for CubePlanner tests."""

from __future__ import annotations

import json

import pytest

from cubeplanner.config import Config


class FakeClient:
    """Stands in for GeminiClient: returns canned text and records calls."""

    def __init__(self, text: str = "", error: Exception | None = None):
        self.text = text
        self.error = error
        self.calls: list[tuple[str, dict]] = []

    def complete(self, system: str, payload: dict) -> str:
        self.calls.append((system, payload))
        if self.error is not None:
            raise self.error
        return self.text


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep real credentials and .env files out of every test."""
    for name in (
        "GEMINI_API_KEY", "GEMINI_MODEL", "INVENTORY_PATH",
        "SHOPPING_LIST_PATH", "LOG_LEVEL", "AVOID_ALLERGENS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def config() -> Config:
    """Return a config with no API key.

    Returns:
        A default Config.
    """
    return Config()


@pytest.fixture()
def inventory() -> list[dict]:
    """Return a small freezer inventory in request format.

    Returns:
        Inventory records with one out-of-stock item.
    """
    return [
        {"id": "1", "name": "Pea", "cubesLeft": 5},
        {"id": "2", "name": "Carrot", "cubesLeft": 4},
        {"id": "3", "name": "Apple", "cubesLeft": 2},
        {"id": "4", "name": "Broccoli", "cubesLeft": 0},
    ]


@pytest.fixture()
def messy_plan_text() -> str:
    """Return a model response that ignores several constraints.

    Returns:
        Raw text wrapped in prose and a code fence.
    """
    plan = {
        "days": [
            {
                "date": "2026-10-19",
                "meals": [
                    {
                        "mealType": "Breakfast",
                        "items": [
                            {"name": "Pea", "cubes": 2},
                            {"name": "pea", "cubes": 1},
                            {"name": "Banana", "cubes": 1},
                        ],
                        "spices": ["cinnamon"],
                    },
                    {
                        "mealType": "lunch",
                        "items": [
                            {"name": "Carrot", "cubes": 3},
                            {"name": "Apple", "cubes": 3},
                            {"name": "Pea", "cubes": 3},
                            {"name": "Broccoli", "cubes": 1},
                        ],
                    },
                ],
            },
            {"date": "2026-10-20", "meals": []},
        ]
    }
    return "Here is the plan:\n```json\n" + json.dumps(plan) + "\n```\nEnjoy!"


@pytest.fixture()
def fake_client_factory():
    """Return the FakeClient class for building per-test clients.

    Returns:
        The FakeClient type.
    """
    return FakeClient
