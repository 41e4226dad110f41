import logging

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from triply.core.exceptions import ConfigurationError, SuggestionServiceError
from triply.settings import SuggestionSettings

logger = logging.getLogger(__name__)

_LOCATION_SCHEMA = genai_types.Schema(
    type=genai_types.Type.OBJECT,
    properties={
        "lat": genai_types.Schema(type=genai_types.Type.NUMBER),
        "lng": genai_types.Schema(type=genai_types.Type.NUMBER),
        "address": genai_types.Schema(type=genai_types.Type.STRING),
    },
    required=["lat", "lng", "address"],
)

SUGGESTIONS_SCHEMA = genai_types.Schema(
    type=genai_types.Type.ARRAY,
    items=genai_types.Schema(
        type=genai_types.Type.OBJECT,
        properties={
            "title": genai_types.Schema(
                type=genai_types.Type.STRING,
                description="Short, catchy title for the suggestion.",
            ),
            "subtitle": genai_types.Schema(
                type=genai_types.Type.STRING,
                description="Brief explanation for the suggestion.",
            ),
            "icon": genai_types.Schema(
                type=genai_types.Type.STRING,
                description="An emoji for the suggestion, e.g. 🏠 🏢 🔁 🏋️.",
            ),
            "location": _LOCATION_SCHEMA,
        },
        required=["title", "subtitle", "icon", "location"],
    ),
)


class GeminiSuggestionBackend:
    """Generates suggestion JSON with a Gemini model."""

    def __init__(self, api_key: str, model: str = "gemini-2.5-flash", timeout_ms: int = 30_000):
        if not api_key:
            raise ConfigurationError("Required credential not provided: GEMINI_API_KEY")
        self._client = genai.Client(
            api_key=api_key,
            http_options=genai_types.HttpOptions(timeout=timeout_ms),
        )
        self._model = model

    async def generate(self, prompt: str) -> str:
        try:
            response = await self._client.aio.models.generate_content(
                model=self._model,
                contents=prompt,
                config=genai_types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=SUGGESTIONS_SCHEMA,
                ),
            )
        except genai_errors.APIError as e:
            raise SuggestionServiceError(f"Gemini API error: {e}") from e

        if not response.text:
            raise SuggestionServiceError("Gemini returned an empty response")
        return response.text


def build_suggestion_backend(settings: SuggestionSettings) -> GeminiSuggestionBackend | None:
    """Backend for the configured credential, or ``None`` when there is none."""
    if not settings.api_key:
        logger.warning("GEMINI_API_KEY not set, smart suggestions disabled")
        return None
    return GeminiSuggestionBackend(api_key=settings.api_key, model=settings.model)
