# weather_handler.py
"""Handler for current conditions, forecast and history requests."""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from smart_weather.core.exceptions import InternalServiceError, UpstreamAPIError
from smart_weather.core.interfaces import LocationBackend, WeatherBackend
from smart_weather.core.models import Coordinates, ParsedQuery, TemperatureUnit
from smart_weather.core.settings import settings

from .types import ApiParameters, Capability, DispatchDecision

logger = logging.getLogger(__name__)

WIND_DIRECTIONS = [
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
]


async def resolve_coordinates(
    parameters: ApiParameters,
    location_backend: Optional[LocationBackend],
    timeout: float,
) -> Tuple[Coordinates, str]:
    """Return coordinates and a display name, geocoding the location name when needed"""
    if parameters.coordinates is not None:
        name = parameters.location or f"{parameters.coordinates.lat:.4f}, {parameters.coordinates.lng:.4f}"
        return parameters.coordinates, name

    if not parameters.location:
        raise UpstreamAPIError("No location to look up", vendor_code="ZERO_RESULTS", api="geocoding")
    if location_backend is None:
        raise UpstreamAPIError(
            f"No geocoder configured for {parameters.location}",
            vendor_code="ZERO_RESULTS",
            api="geocoding",
        )

    results = await asyncio.wait_for(
        location_backend.search(parameters.location, language=parameters.language),
        timeout=timeout,
    )
    if not results:
        raise UpstreamAPIError(
            f"No geocoding results for {parameters.location}",
            vendor_code="ZERO_RESULTS",
            api="geocoding",
        )

    best = results[0]
    return Coordinates(lat=float(best["lat"]), lng=float(best["lng"])), best.get("name", parameters.location)


def wind_direction(degrees: float) -> str:
    index = round((degrees % 360) / 22.5)
    return WIND_DIRECTIONS[index % 16]


def uv_description(uv_index: float) -> str:
    if uv_index <= 2:
        return "Low"
    if uv_index <= 5:
        return "Moderate"
    if uv_index <= 7:
        return "High"
    if uv_index <= 10:
        return "Very High"
    return "Extreme"


class WeatherSearchHandler:
    """Calls the weather backend method selected by the dispatcher"""

    def __init__(
        self,
        weather_backend: WeatherBackend,
        location_backend: Optional[LocationBackend] = None,
        timeout: Optional[float] = None,
    ):
        self.weather_backend = weather_backend
        self.location_backend = location_backend
        self.timeout = timeout or settings.DOWNSTREAM_TIMEOUT

    async def handle(
        self, parsed_query: ParsedQuery, decision: DispatchDecision
    ) -> Tuple[str, Dict[str, Any]]:
        """Fetch weather data and render it for the caller"""
        parameters = decision.parameters
        coordinates, location_name = await resolve_coordinates(
            parameters, self.location_backend, self.timeout
        )

        data = await asyncio.wait_for(
            self._call_backend(decision.capability, coordinates, parameters),
            timeout=self.timeout,
        )

        unit = parsed_query.user_preferences.temperature_unit
        answer = self._format(decision.capability, location_name, coordinates, data, unit)
        additional_info = {
            "capability": decision.capability.value,
            "location": {"name": location_name, "coordinates": coordinates.to_dict()},
            "time_scope": parsed_query.time_scope.to_dict(),
            "units": parameters.units,
            "data": data,
        }
        return answer, additional_info

    async def _call_backend(
        self, capability: Capability, coordinates: Coordinates, parameters: ApiParameters
    ) -> Dict[str, Any]:
        common = {"units": parameters.units, "language": parameters.language}
        lat, lng = coordinates.lat, coordinates.lng

        if capability == Capability.CURRENT_CONDITIONS:
            return await self.weather_backend.current_conditions(lat, lng, **common)
        if capability == Capability.DAILY_FORECAST:
            return await self.weather_backend.daily_forecast(
                lat, lng, days=parameters.forecast_days or 5, **common
            )
        if capability == Capability.HOURLY_FORECAST:
            return await self.weather_backend.hourly_forecast(
                lat, lng, hours=parameters.forecast_hours or 24, **common
            )
        if capability == Capability.HISTORY:
            return await self.weather_backend.history(
                lat, lng, start=parameters.start, end=parameters.end, **common
            )
        raise InternalServiceError(f"Weather handler cannot serve {capability.value}")

    def _format(
        self,
        capability: Capability,
        location_name: str,
        coordinates: Coordinates,
        data: Dict[str, Any],
        unit: TemperatureUnit,
    ) -> str:
        symbol = "°F" if unit == TemperatureUnit.FAHRENHEIT else "°C"
        lines = [
            f"**Weather for {location_name}**",
            f"Coordinates: {coordinates.lat:.4f}°, {coordinates.lng:.4f}°",
            "",
        ]

        if capability == Capability.CURRENT_CONDITIONS:
            lines.extend(self._format_current(data, symbol))
        elif capability == Capability.HOURLY_FORECAST:
            lines.append("**Hourly Forecast:**")
            lines.extend(self._format_hours(data.get("hours", []), symbol))
        else:
            title = "History" if capability == Capability.HISTORY else "Forecast"
            lines.append(f"**{title}:**")
            lines.extend(self._format_days(data.get("days", []), symbol))

        return "\n".join(lines).rstrip()

    @staticmethod
    def _format_current(data: Dict[str, Any], symbol: str) -> List[str]:
        lines = ["**Current Conditions:**"]
        if "temperature" in data:
            lines.append(f"- Temperature: {float(data['temperature']):.1f}{symbol}")
        if data.get("description"):
            lines.append(f"- Description: {data['description']}")
        if "humidity" in data:
            lines.append(f"- Humidity: {float(data['humidity']):.0f}%")
        if "wind_kph" in data:
            wind = f"- Wind: {float(data['wind_kph']):.1f} km/h"
            if data.get("wind_direction") is not None:
                wind += f" ({wind_direction(float(data['wind_direction']))})"
            lines.append(wind)
        if "pressure" in data:
            lines.append(f"- Pressure: {float(data['pressure']):.0f} hPa")
        if data.get("uv_index") is not None:
            uv_index = float(data["uv_index"])
            lines.append(f"- UV Index: {uv_index:g} ({uv_description(uv_index)})")
        return lines

    @staticmethod
    def _format_days(days: List[Dict[str, Any]], symbol: str) -> List[str]:
        if not days:
            return ["- No data returned for this period"]
        lines = []
        for day in days:
            line = (
                f"- {day.get('date', '?')}: {float(day.get('high', 0)):.0f}{symbol}/"
                f"{float(day.get('low', 0)):.0f}{symbol}, {day.get('description', '')}".rstrip(", ")
            )
            chance = day.get("precipitation_chance") or 0
            if chance > 0:
                line += f" ({chance}% rain)"
            lines.append(line)
        return lines

    @staticmethod
    def _format_hours(hours: List[Dict[str, Any]], symbol: str) -> List[str]:
        if not hours:
            return ["- No hourly data returned"]
        lines = []
        for hour in hours[:12]:
            line = f"- {hour.get('time', '?')}: {float(hour.get('temperature', 0)):.0f}{symbol}, {hour.get('description', '')}".rstrip(", ")
            chance = hour.get("precipitation_chance") or 0
            if chance > 0:
                line += f" ({chance}% rain)"
            lines.append(line)
        return lines
