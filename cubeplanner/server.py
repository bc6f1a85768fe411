"""HTTP endpoints for plan and shopping requests."""

import json
import logging
import math
from typing import Optional

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException, MethodNotAllowed

from .config import Config
from .errors import BadShape, MalformedResponse, UpstreamUnavailable
from .models import PlanConstraints, ShoppingListEntry, round_half_up
from .planner import MealPlanner
from .shopping import ShoppingAdvisor

logger = logging.getLogger(__name__)


class BadRequestBody(ValueError):
    """The request body is not a usable JSON object."""


def _read_json_body() -> dict:
    raw = request.get_data(as_text=True)
    if not raw or not raw.strip():
        return {}
    try:
        body = json.loads(raw)
    except ValueError as e:
        raise BadRequestBody("Invalid JSON body") from e
    if not isinstance(body, dict):
        raise BadRequestBody("Invalid JSON body")
    return body


def _as_int(value, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        return round_half_up(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def _as_bool(value, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def _as_float(value, default: float) -> float:
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def _as_list(value) -> list:
    return value if isinstance(value, list) else []


def _as_names(value) -> list[str]:
    return [v.strip() for v in _as_list(value) if isinstance(v, str) and v.strip()]


def create_app(
    config: Optional[Config] = None,
    planner: Optional[MealPlanner] = None,
    advisor: Optional[ShoppingAdvisor] = None,
) -> Flask:
    """Build the Flask app. Planner and advisor can be injected for tests."""
    config = config or Config.from_env()
    planner = planner or MealPlanner(config)
    advisor = advisor or ShoppingAdvisor(config)

    app = Flask(__name__)
    CORS(app)
    app.config["CUBEPLANNER"] = config

    @app.errorhandler(BadRequestBody)
    def handle_bad_body(e):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(MalformedResponse)
    def handle_malformed(e):
        logger.warning("Malformed model response: %s", e)
        return jsonify({"error": str(e), "raw": e.raw}), 502

    @app.errorhandler(BadShape)
    def handle_bad_shape(e):
        logger.warning("Model response had the wrong shape: %s", e)
        return jsonify({"error": str(e), "raw": e.raw}), 502

    @app.errorhandler(UpstreamUnavailable)
    def handle_upstream(e):
        logger.error("Upstream unavailable: %s", e)
        return jsonify({"error": str(e)}), 500

    @app.errorhandler(MethodNotAllowed)
    def handle_method(e):
        response = jsonify({"error": "Method Not Allowed"})
        response.status_code = 405
        # OPTIONS/HEAD are answered automatically and are not advertised
        allowed = [m for m in (e.valid_methods or []) if m not in ("OPTIONS", "HEAD")]
        response.headers["Allow"] = ", ".join(allowed or ["POST"])
        return response

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return jsonify({"error": e.description or e.name}), e.code
        logger.exception("Unhandled error while serving %s", request.path)
        return jsonify({"error": str(e) or e.__class__.__name__}), 500

    @app.route("/api/health", methods=["GET"])
    def health():
        return jsonify({
            "ok": True,
            "hasKey": config.has_api_key,
            "model": config.gemini_model,
        })

    @app.route("/api/log", methods=["POST"])
    def client_log():
        try:
            body = _read_json_body()
        except BadRequestBody:
            body = {}
        level = str(body.get("level") or "info").lower()
        message = body.get("message") or ""
        context = body.get("context") or {}
        log_level = logging.ERROR if level == "error" else logging.WARNING if level == "warn" else logging.INFO
        logger.log(log_level, "[client:%s] %s %s", level, message, context)
        return jsonify({"ok": True})

    @app.route("/api/ai/plan", methods=["POST"])
    @app.route("/api/plan", methods=["POST"], endpoint="plan_alias")
    def plan():
        body = _read_json_body()
        defaults = config.plan_defaults

        days = max(1, _as_int(body.get("days"), defaults.days))
        per_meal_cubes = _as_int(body.get("perMealCubes"), defaults.per_meal_cubes)
        allergens = body.get("avoidAllergens")
        if not isinstance(allergens, list):
            allergens = defaults.avoid_allergens
        constraints = PlanConstraints(
            exact_ingredient_count=_as_int(body.get("maxIngredients"), defaults.max_ingredients),
            only_inventory=_as_bool(body.get("onlyInventory"), defaults.only_inventory),
            target_cubes_per_meal=per_meal_cubes if per_meal_cubes > 0 else None,
            avoid_allergens=_as_names(allergens),
        )
        inventory = [r for r in _as_list(body.get("inventory")) if isinstance(r, dict)]

        result = planner.generate_plan(inventory, days=days, constraints=constraints)
        return jsonify(result.to_dict())

    @app.route("/api/ai/shop", methods=["POST"])
    def shop():
        body = _read_json_body()
        defaults = config.shopping_defaults

        days_to_cover = _as_float(body.get("daysToCover"), defaults.days_to_cover)
        per_day_cubes = _as_float(body.get("perDayCubes"), defaults.per_day_cubes)
        if not math.isfinite(days_to_cover * per_day_cubes):
            raise BadRequestBody("daysToCover * perDayCubes is out of range")

        shopping_list = [
            ShoppingListEntry.from_dict(r)
            for r in _as_list(body.get("shoppingList"))
            if isinstance(r, dict)
        ]
        allergens = body.get("avoidAllergens")

        suggestions = advisor.suggest(
            [r for r in _as_list(body.get("inventory")) if isinstance(r, dict)],
            days_to_cover=days_to_cover,
            per_day_cubes=per_day_cubes,
            shopping_list=shopping_list,
            avoid_allergens=_as_names(allergens) if isinstance(allergens, list) else None,
        )
        return jsonify({"items": [s.to_dict() for s in suggestions]})

    return app
