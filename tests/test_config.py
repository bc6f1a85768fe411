"""Tests for cubeplanner.config module."""

from __future__ import annotations

from cubeplanner.config import Config


def test_avoid_allergens_from_env(monkeypatch) -> None:
    """Test AVOID_ALLERGENS feeds both plan and shopping defaults."""
    monkeypatch.setenv("AVOID_ALLERGENS", "egg, peanut ,,")

    config = Config.from_env()

    assert config.plan_defaults.avoid_allergens == ["egg", "peanut"]
    assert config.shopping_defaults.avoid_allergens == ["egg", "peanut"]
    assert config.plan_defaults.to_constraints().avoid_allergens == ["egg", "peanut"]


def test_no_allergens_by_default() -> None:
    """Test an unset AVOID_ALLERGENS avoids nothing."""
    config = Config.from_env()
    assert config.plan_defaults.avoid_allergens == []
    assert config.shopping_defaults.avoid_allergens == []
