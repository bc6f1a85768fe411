"""Tests for cubeplanner.server module."""

from __future__ import annotations

import json
import logging

import pytest

from cubeplanner.config import Config, PlanDefaults
from cubeplanner.planner import MealPlanner
from cubeplanner.server import create_app
from cubeplanner.shopping import ShoppingAdvisor

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_client(fake_client_factory):
    """Build a Flask test client whose model returns canned text.

    Returns:
        A factory taking the model text and returning (test_client, fake_model).
    """

    def _make(text: str = '{"days": []}', config: Config | None = None):
        config = config or Config()
        model = fake_client_factory(text)
        app = create_app(
            config,
            planner=MealPlanner(config, client=model),
            advisor=ShoppingAdvisor(config, client=model),
        )
        app.testing = True
        return app.test_client(), model

    return _make


# ---------------------------------------------------------------------------
# Health, logging and method handling
# ---------------------------------------------------------------------------


class TestHealthAndLog:
    """Tests for the auxiliary endpoints."""

    def test_health_reports_key(self) -> None:
        """Test health shows whether a key is configured."""
        app = create_app(Config(gemini_api_key="secret", gemini_model="gemini-x"))
        response = app.test_client().get("/api/health")

        assert response.status_code == 200
        assert response.get_json() == {"ok": True, "hasKey": True, "model": "gemini-x"}

    def test_health_without_key(self) -> None:
        """Test health works without credentials."""
        response = create_app(Config()).test_client().get("/api/health")
        assert response.get_json()["hasKey"] is False

    def test_client_log(self, caplog) -> None:
        """Test client log lines are written at the requested level."""
        client = create_app(Config()).test_client()
        with caplog.at_level(logging.INFO, logger="cubeplanner.server"):
            response = client.post("/api/log", json={"level": "error", "message": "boom"})

        assert response.get_json() == {"ok": True}
        record = next(r for r in caplog.records if "boom" in r.getMessage())
        assert record.levelno == logging.ERROR

    def test_client_log_tolerates_bad_body(self) -> None:
        """Test the log endpoint never fails on a broken body."""
        client = create_app(Config()).test_client()
        response = client.post("/api/log", data="{oops", content_type="application/json")
        assert response.status_code == 200

    @pytest.mark.parametrize("path", ["/api/ai/plan", "/api/plan", "/api/ai/shop"])
    def test_get_is_method_not_allowed(self, path: str) -> None:
        """Test non-POST requests get 405 with Allow: POST."""
        response = create_app(Config()).test_client().get(path)

        assert response.status_code == 405
        assert response.headers["Allow"] == "POST"
        assert "error" in response.get_json()


# ---------------------------------------------------------------------------
# Plan endpoint
# ---------------------------------------------------------------------------


class TestPlanEndpoint:
    """Tests for POST /api/ai/plan."""

    def test_messy_plan_is_normalized(self, make_client, inventory, messy_plan_text) -> None:
        """Test the endpoint returns the repaired plan."""
        client, _ = make_client(messy_plan_text)
        response = client.post("/api/ai/plan", json={
            "days": 2,
            "perMealCubes": 3,
            "maxIngredients": 2,
            "onlyInventory": True,
            "inventory": inventory,
        })

        assert response.status_code == 200
        days = response.get_json()["days"]
        assert days[0]["meals"][0]["items"] == [
            {"name": "Pea", "cubes": 2},
            {"name": "Carrot", "cubes": 1},
        ]
        assert days[1] == {"date": "2026-10-20", "meals": []}

    def test_request_fields_reach_the_model(self, make_client, inventory) -> None:
        """Test body values are coerced and passed to the model payload."""
        client, model = make_client()
        client.post("/api/plan", json={
            "days": "4",
            "perMealCubes": 0,
            "maxIngredients": 2.4,
            "onlyInventory": "false",
            "inventory": inventory + ["junk"],
        })

        _, payload = model.calls[0]
        assert payload["days"] == 4
        assert payload["perMealCubes"] is None
        assert payload["maxIngredients"] == 2
        assert payload["onlyInventory"] is False
        assert len(payload["inventory"]) == 4

    def test_empty_body_uses_defaults(self, make_client) -> None:
        """Test an empty body falls back to configured defaults."""
        client, model = make_client()
        response = client.post("/api/ai/plan")

        assert response.status_code == 200
        assert response.get_json() == {"days": []}
        assert model.calls[0][1]["days"] == 3

    @pytest.mark.parametrize("body", ["{not json", "[1, 2]", '"text"'])
    def test_invalid_body_is_400(self, make_client, body: str) -> None:
        """Test invalid or non-object JSON bodies are rejected."""
        client, model = make_client()
        response = client.post("/api/ai/plan", data=body, content_type="application/json")

        assert response.status_code == 400
        assert response.get_json() == {"error": "Invalid JSON body"}
        assert model.calls == []

    def test_malformed_model_output_is_502(self, make_client, inventory) -> None:
        """Test unusable model text returns 502 with the raw text."""
        client, _ = make_client("I can't help with that.")
        response = client.post("/api/ai/plan", json={"inventory": inventory})

        assert response.status_code == 502
        body = response.get_json()
        assert body["raw"] == "I can't help with that."
        assert body["error"]

    def test_bad_shape_is_502(self, make_client, inventory) -> None:
        """Test JSON without a days array returns 502 with the raw text."""
        client, _ = make_client('{"meals": []}')
        response = client.post("/api/ai/plan", json={"inventory": inventory})

        assert response.status_code == 502
        body = response.get_json()
        assert "days" in body["error"]
        assert body["raw"] == '{"meals": []}'

    def test_missing_key_is_500(self, inventory) -> None:
        """Test a server without credentials returns 500."""
        client = create_app(Config()).test_client()
        response = client.post("/api/ai/plan", json={"inventory": inventory})

        assert response.status_code == 500
        assert response.get_json() == {"error": "Missing GEMINI_API_KEY on server"}


# ---------------------------------------------------------------------------
# Shopping endpoint
# ---------------------------------------------------------------------------


class TestShopEndpoint:
    """Tests for POST /api/ai/shop."""

    def test_no_deficit_without_key(self) -> None:
        """Test a covered freezer returns no items even without credentials."""
        client = create_app(Config()).test_client()
        response = client.post("/api/ai/shop", json={
            "inventory": [{"name": "Pea", "cubesLeft": 30}],
            "daysToCover": 3,
            "perDayCubes": 6,
        })

        assert response.status_code == 200
        assert response.get_json() == {"items": []}

    def test_suggestions_are_filtered(self, make_client) -> None:
        """Test suggestions already on the list or duplicated are removed."""
        text = json.dumps({"items": [
            {"name": "Apple", "quantity": 2},
            {"name": "pear", "quantity": 1, "reason": "fiber"},
            {"name": "PEAR", "quantity": 3},
            {"name": "Peanut puffs", "quantity": 1},
        ]})
        client, model = make_client(text)
        response = client.post("/api/ai/shop", json={
            "inventory": [{"name": "Pea", "cubesLeft": 10}],
            "daysToCover": 3,
            "perDayCubes": 6,
            "shoppingList": [{"id": "s1", "name": "apple"}],
            "avoidAllergens": ["peanut"],
        })

        assert response.status_code == 200
        assert response.get_json() == {
            "items": [{"name": "pear", "quantity": 1, "reason": "fiber"}]
        }
        assert model.calls[0][1]["deficit"] == 8

    def test_deficit_without_key_is_500(self) -> None:
        """Test a real deficit without credentials returns 500."""
        client = create_app(Config()).test_client()
        response = client.post("/api/ai/shop", json={"inventory": [], "daysToCover": 1})
        assert response.status_code == 500

    def test_bad_shape_is_502(self, make_client) -> None:
        """Test a shopping answer without items returns 502."""
        client, _ = make_client('{"days": []}')
        response = client.post("/api/ai/shop", json={"inventory": []})

        assert response.status_code == 502
        assert response.get_json()["raw"] == '{"days": []}'


# ---------------------------------------------------------------------------
# Allergens and error fallbacks
# ---------------------------------------------------------------------------


class TestAllergensAndErrors:
    """Tests for allergen handling on plans and the JSON error fallbacks."""

    def test_plan_avoids_allergens(self, make_client, inventory, messy_plan_text) -> None:
        """Test avoided allergens are removed and never used as padding."""
        client, model = make_client(messy_plan_text)
        response = client.post("/api/ai/plan", json={
            "days": 2,
            "perMealCubes": 3,
            "maxIngredients": 2,
            "avoidAllergens": ["carrot"],
            "inventory": inventory,
        })

        assert response.status_code == 200
        meals = response.get_json()["days"][0]["meals"]
        assert [[i["name"] for i in meal["items"]] for meal in meals] == [
            ["Pea", "Apple"],
            ["Apple", "Pea"],
        ]
        system, payload = model.calls[0]
        assert payload["avoidAllergens"] == ["carrot"]
        assert "Never use these allergens" in system

    def test_plan_allergens_default_from_config(self, make_client) -> None:
        """Test configured allergens apply when the body has none."""
        config = Config(plan_defaults=PlanDefaults(avoid_allergens=["pea"]))
        client, model = make_client(config=config)
        client.post("/api/ai/plan", json={})
        assert model.calls[0][1]["avoidAllergens"] == ["pea"]

    def test_out_of_range_shop_request_is_400(self, make_client) -> None:
        """Test a deficit too large to compute is a client error."""
        client, model = make_client('{"items": []}')
        response = client.post("/api/ai/shop", json={"daysToCover": 1e200, "perDayCubes": 1e200})

        assert response.status_code == 400
        assert "error" in response.get_json()
        assert model.calls == []

    def test_unexpected_error_is_json_500(self) -> None:
        """Test an unhandled exception still answers with a JSON body."""

        class BrokenAdvisor:
            def suggest(self, *args, **kwargs):
                raise RuntimeError("boom")

        app = create_app(Config(), planner=MealPlanner(Config()), advisor=BrokenAdvisor())
        response = app.test_client().post("/api/ai/shop", json={})

        assert response.status_code == 500
        assert response.get_json() == {"error": "boom"}

    def test_unknown_route_is_json_404(self) -> None:
        """Test routing errors are reported as JSON."""
        response = create_app(Config()).test_client().get("/api/nope")

        assert response.status_code == 404
        assert "error" in response.get_json()
