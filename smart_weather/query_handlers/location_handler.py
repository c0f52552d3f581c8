# location_handler.py
import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from smart_weather.core.exceptions import UpstreamAPIError
from smart_weather.core.interfaces import LocationBackend
from smart_weather.core.models import ParsedQuery
from smart_weather.core.settings import settings

from .location_config import LocationConfigLoader, get_location_config
from .types import DispatchDecision

logger = logging.getLogger(__name__)

MAX_CANDIDATES = 5


class LocationSearchHandler:
    """Handler for 'where is X' style questions and geocoding requests"""

    def __init__(
        self,
        location_backend: Optional[LocationBackend] = None,
        location_config: Optional[LocationConfigLoader] = None,
        timeout: Optional[float] = None,
    ):
        self.location_backend = location_backend
        self.location_config = location_config or get_location_config()
        self.timeout = timeout or settings.DOWNSTREAM_TIMEOUT

    async def handle(
        self, parsed_query: ParsedQuery, decision: DispatchDecision
    ) -> Tuple[str, Dict[str, Any]]:
        """Look up candidate places for the requested name"""
        term = parsed_query.location.name or parsed_query.original_query.strip()
        language = decision.parameters.language

        candidates = self._known_places(term, parsed_query)
        if self.location_backend is not None:
            results = await asyncio.wait_for(
                self.location_backend.search(term, language=language),
                timeout=self.timeout,
            )
            candidates = self._merge(candidates, results)

        if not candidates:
            raise UpstreamAPIError(
                f"No places found for {term}", vendor_code="ZERO_RESULTS", api="geocoding"
            )

        candidates = candidates[:MAX_CANDIDATES]
        logger.info(f"Location search for '{term}' returned {len(candidates)} candidates")

        answer = self._format(term, candidates)
        additional_info = {
            "query": term,
            "candidates": candidates,
            "ambiguous": len(candidates) > 1,
        }
        return answer, additional_info

    def _known_places(self, term: str, parsed_query: ParsedQuery) -> List[Dict[str, Any]]:
        places = self.location_config.lookup(term)
        if not places:
            for match in self.location_config.find_in_text(term):
                places.extend(place for place in match.places if place not in places)

        candidates = [
            {
                "name": place.name,
                "lat": place.lat,
                "lng": place.lng,
                "country": place.country,
                "timezone": place.timezone,
            }
            for place in places
        ]

        # Coordinates given in the query are a candidate in their own right
        coordinates = parsed_query.location.coordinates
        if not candidates and coordinates is not None:
            candidates.append(
                {
                    "name": parsed_query.location.name or f"{coordinates.lat:.4f}, {coordinates.lng:.4f}",
                    "lat": coordinates.lat,
                    "lng": coordinates.lng,
                    "country": "",
                    "timezone": None,
                }
            )
        return candidates

    @staticmethod
    def _merge(known: List[Dict[str, Any]], results: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        merged = list(known)
        seen = {(round(c["lat"], 2), round(c["lng"], 2)) for c in merged}
        for result in results or []:
            key = (round(float(result["lat"]), 2), round(float(result["lng"]), 2))
            if key in seen:
                continue
            seen.add(key)
            merged.append(
                {
                    "name": result.get("name") or result.get("formatted_address", ""),
                    "lat": float(result["lat"]),
                    "lng": float(result["lng"]),
                    "country": result.get("country", ""),
                    "timezone": result.get("timezone"),
                }
            )
        return merged

    @staticmethod
    def _format(term: str, candidates: List[Dict[str, Any]]) -> str:
        if len(candidates) == 1:
            place = candidates[0]
            label = f"{place['name']} ({place['country']})" if place["country"] else place["name"]
            return (
                f"**{label}**\n"
                f"Coordinates: {place['lat']:.4f}°, {place['lng']:.4f}°"
            )

        lines = [f"Found {len(candidates)} places matching '{term}':"]
        for i, place in enumerate(candidates, 1):
            label = f"{place['name']} ({place['country']})" if place["country"] else place["name"]
            lines.append(f"{i}. {label}: {place['lat']:.4f}°, {place['lng']:.4f}°")
        lines.append("")
        lines.append("Please specify which one you mean.")
        return "\n".join(lines)
