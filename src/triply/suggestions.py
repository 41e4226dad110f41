"""Next-destination suggestions from trip history and saved places.

The ranking itself is delegated to a generative service, which is treated as
untrusted: it only sees minimised history, and every suggestion it returns
must point at one of the saved places it was given.
"""

import json
import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from triply.core.exceptions import SuggestionServiceError
from triply.geo.models import GeoPoint
from triply.places import SavedPlace
from triply.trip import Trip

logger = logging.getLogger(__name__)


class Suggestion(BaseModel):
    """Derived on every request, never stored."""

    model_config = ConfigDict(frozen=True)

    title: str
    subtitle: str
    icon: str
    location: GeoPoint


class SuggestedLocation(BaseModel):
    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)
    address: str


class SuggestionPayload(BaseModel):
    """Shape each element of the service response must have."""

    title: str = Field(min_length=1)
    subtitle: str
    icon: str
    location: SuggestedLocation


class SuggestionBackend(Protocol):
    async def generate(self, prompt: str) -> str:
        """Return the raw JSON text produced for ``prompt``."""
        ...


PROMPT_TEMPLATE = """\
You are an assistant for a ride-hailing app called Triply.
Your goal is to provide helpful, context-aware suggestions for the user's next trip.
Based on the user's recent trips and saved places, generate {count} smart suggestions.
The title and subtitle must be written in {language}.

Context:
{context}

Suggestion ideas:
- Go to work: on a weekday morning when a 'work' place is saved.
- Go home: on a weekday evening when a 'home' place is saved.
- Repeat the last trip: when the last trip was recent and relevant.
- A saved place such as the gym at a typical time.

Only suggest a destination if you have its full location data from the saved places.
The location MUST be copied from the "location" field of a saved place. Do not invent coordinates.
Return the suggestions as a JSON array. If no good suggestions can be made, return an empty array.
"""


def build_context(
    trips: Sequence[Trip], places: Sequence[SavedPlace], now: datetime
) -> dict[str, Any]:
    """History reduced to what the service needs; no ids, no personal fields."""
    return {
        "current_time": now.strftime("%A %H:%M"),
        "recent_trips": [
            {"to": trip.dropoff.address, "when": trip.created_at.date().isoformat()}
            for trip in trips
        ],
        "saved_places": [
            {
                "name": place.name,
                "category": place.category.value,
                "address": place.address,
                "location": {"lat": place.location.lat, "lng": place.location.lng},
            }
            for place in places
        ],
    }


def build_prompt(
    trips: Sequence[Trip],
    places: Sequence[SavedPlace],
    now: datetime,
    count: int = 2,
    language: str = "Arabic",
) -> str:
    context = json.dumps(build_context(trips, places, now), ensure_ascii=False, indent=2)
    return PROMPT_TEMPLATE.format(count=count, language=language, context=context)


def strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else text[3:]
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def parse_suggestions(raw: str) -> list[SuggestionPayload]:
    """Decode the service's reply. Elements with the wrong shape are skipped;
    a reply that is not a JSON array raises ``SuggestionServiceError``."""
    try:
        data = json.loads(strip_code_fence(raw))
    except json.JSONDecodeError as e:
        raise SuggestionServiceError(f"Suggestion reply is not JSON: {e}") from e
    if not isinstance(data, list):
        raise SuggestionServiceError(
            "Suggestion reply is not an array", details={"type": type(data).__name__}
        )

    payloads = []
    for item in data:
        try:
            payloads.append(SuggestionPayload.model_validate(item))
        except ValidationError as e:
            logger.debug(f"Dropping malformed suggestion: {e.error_count()} errors")
    return payloads


def match_place(payload: SuggestionPayload, places: Sequence[SavedPlace]) -> SavedPlace | None:
    candidate = GeoPoint(lat=payload.location.lat, lng=payload.location.lng)
    for place in places:
        if candidate.same_coordinates(place.to_point()):
            return place
    return None


class SuggestionRanker:
    def __init__(
        self,
        backend: SuggestionBackend | None,
        suggestion_count: int = 2,
        language: str = "Arabic",
    ):
        self.backend = backend
        self.suggestion_count = suggestion_count
        self.language = language

    async def rank(
        self, trips: Sequence[Trip], places: Sequence[SavedPlace], now: datetime
    ) -> list[Suggestion]:
        """Suggestions for the home screen. Never raises; ``[]`` on any failure."""
        if self.backend is None:
            logger.debug("No suggestion backend configured")
            return []
        if not places or self.suggestion_count == 0:
            # Nothing could pass the provenance check.
            return []

        prompt = build_prompt(trips, places, now, self.suggestion_count, self.language)
        try:
            payloads = parse_suggestions(await self.backend.generate(prompt))
        except Exception as e:
            logger.warning(f"Smart suggestions unavailable: {e}")
            return []

        suggestions = []
        for payload in payloads:
            place = match_place(payload, places)
            if place is None:
                logger.info(f"Dropping suggestion '{payload.title}' with untraceable location")
                continue
            suggestions.append(
                Suggestion(
                    title=payload.title,
                    subtitle=payload.subtitle,
                    icon=payload.icon,
                    location=place.to_point(),
                )
            )
        return suggestions[: self.suggestion_count]
