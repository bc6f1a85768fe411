"""Extract JSON objects from language model responses."""

import json
import logging
import re

from .errors import BadShape, MalformedResponse

logger = logging.getLogger(__name__)

FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)

PLAN_KEYS = ("days", "plans")
SHOPPING_KEYS = ("items", "shopping")


def _try_load(text: str):
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None


def extract_json(text: str) -> dict:
    """
    Pull a JSON object out of raw model text.

    Tries, in order: the whole string, the first fenced code block, and the
    span from the first ``{`` to the last ``}``. Raises MalformedResponse
    carrying the raw text if none of them yields an object.
    """
    if not text or not text.strip():
        raise MalformedResponse("Empty model response", raw=text or "")

    candidates = [text]

    fence = FENCE_RE.search(text)
    if fence and fence.group(1).strip():
        candidates.append(fence.group(1).strip())

    first = text.find("{")
    last = text.rfind("}")
    if first != -1 and last > first:
        candidates.append(text[first:last + 1])

    for candidate in candidates:
        data = _try_load(candidate)
        if isinstance(data, dict):
            return data

    logger.warning("Could not extract JSON from model response (%d chars)", len(text))
    raise MalformedResponse("Model did not return JSON", raw=text)


def _require_array(data: dict, keys: tuple[str, ...], raw: str) -> dict:
    if any(isinstance(data.get(key), list) for key in keys):
        return data
    raise BadShape(
        "Bad AI response shape: expected a " + " or ".join(f"'{k}'" for k in keys) + " array",
        raw=raw,
        expected=keys,
    )


def parse_plan_response(text: str) -> dict:
    """Parse a meal plan response; it must hold a `days` (or `plans`) array."""
    return _require_array(extract_json(text), PLAN_KEYS, text)


def parse_shopping_response(text: str) -> dict:
    """Parse a shopping response; it must hold an `items` (or `shopping`) array."""
    return _require_array(extract_json(text), SHOPPING_KEYS, text)
