"""Google Gemini client used for plan and shopping completions."""

import json
import logging

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from .config import Config
from .errors import MalformedResponse, UpstreamUnavailable

logger = logging.getLogger(__name__)


class GeminiClient:
    """Sends one system prompt plus a JSON payload and returns the raw text."""

    def __init__(
        self,
        api_key: str,
        model_name: str = "gemini-2.5-flash",
        timeout: float = 60.0,
        temperature: float = 0.2,
    ):
        if not api_key:
            raise UpstreamUnavailable("Missing GEMINI_API_KEY on server")
        genai.configure(api_key=api_key)
        self.model_name = model_name
        self.timeout = timeout
        self.temperature = temperature

    @classmethod
    def from_config(cls, config: Config) -> "GeminiClient":
        return cls(
            api_key=config.gemini_api_key,
            model_name=config.gemini_model,
            timeout=config.llm_timeout_seconds,
        )

    def complete(self, system: str, payload: dict) -> str:
        """Run a single JSON-mode completion. No retries."""
        model = genai.GenerativeModel(self.model_name, system_instruction=system)

        try:
            response = model.generate_content(
                json.dumps(payload),
                generation_config=genai.GenerationConfig(
                    response_mime_type="application/json",
                    temperature=self.temperature,
                ),
                request_options={"timeout": self.timeout},
            )
        except google_exceptions.DeadlineExceeded as e:
            # A timed-out completion is handled like unusable output
            logger.warning("Gemini timed out after %ss", self.timeout)
            raise MalformedResponse(f"Model timed out after {self.timeout}s") from e
        except (google_exceptions.GoogleAPIError, ConnectionError) as e:
            logger.error("Gemini request failed: %s", e)
            raise UpstreamUnavailable(f"Gemini request failed: {e}") from e

        try:
            return response.text
        except ValueError as e:
            # Raised by the SDK when the candidate was blocked or empty
            raise MalformedResponse("Model returned no text") from e
