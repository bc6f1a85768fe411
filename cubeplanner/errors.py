"""Exceptions raised while turning model output into a usable plan."""


class CubePlannerError(Exception):
    """Base class for all CubePlanner errors."""


class MalformedResponse(CubePlannerError):
    """The model's text could not be coerced into a JSON object."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


class BadShape(CubePlannerError):
    """Valid JSON that is missing the expected top-level array."""

    def __init__(self, message: str, raw: str = "", expected: tuple[str, ...] = ()):
        super().__init__(message)
        self.raw = raw
        self.expected = expected


class UpstreamUnavailable(CubePlannerError):
    """The language model could not be reached (no credentials, network failure)."""
