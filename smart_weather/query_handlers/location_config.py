# location_config.py
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import yaml

from smart_weather.core.models import Coordinates
from smart_weather.core.settings import settings

logger = logging.getLogger(__name__)


@dataclass
class PlaceConfig:
    """Configuration for a known place"""

    name: str
    aliases: List[str]
    lat: float
    lng: float
    country: str = ""
    timezone: Optional[str] = None

    @property
    def coordinates(self) -> Coordinates:
        return Coordinates(lat=self.lat, lng=self.lng)

    def all_terms(self) -> List[str]:
        return [self.name] + list(self.aliases)


@dataclass
class PlaceMatch:
    """A known-place alias found in a piece of text"""

    start: int
    end: int
    alias: str
    places: List[PlaceConfig] = field(default_factory=list)

    @property
    def is_ambiguous(self) -> bool:
        return len(self.places) > 1


class LocationConfigLoader:
    """Loads and manages the known-place dictionary from YAML files"""

    def __init__(self, config_path: Optional[str] = None):
        if config_path is None:
            config_path = settings.LOCATIONS_CONFIG_PATH

        self.config_path = config_path
        self.places: List[PlaceConfig] = []
        self.stop_words: List[str] = []
        self._alias_index: Dict[str, List[PlaceConfig]] = {}
        self._alias_pattern: Optional[re.Pattern] = None

        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from YAML file"""
        try:
            if not os.path.exists(self.config_path):
                logger.warning(
                    f"Location config file not found at {self.config_path}, using defaults"
                )
                self._load_defaults()
                return

            with open(self.config_path, encoding="utf-8") as file:
                config = yaml.safe_load(file) or {}

            self.places = [
                PlaceConfig(
                    name=str(place["name"]),
                    aliases=[str(alias) for alias in place.get("aliases") or []],
                    lat=float(place["lat"]),
                    lng=float(place["lng"]),
                    country=str(place.get("country") or ""),
                    timezone=place.get("timezone"),
                )
                for place in config.get("places", [])
            ]
            self.stop_words = [str(word).lower() for word in config.get("stop_words") or []]

            if not self.places:
                logger.warning(f"No places defined in {self.config_path}, using defaults")
                self._load_defaults()
                return

            logger.info(f"Loaded location config: {len(self.places)} places")

        except Exception as e:
            logger.error(f"Error loading location config: {str(e)}")
            self._load_defaults()
        finally:
            self._build_index()

    def _load_defaults(self) -> None:
        """Load minimal default configuration if file is not available"""
        self.places = [
            PlaceConfig("Taipei", ["台北", "臺北", "台北市", "臺北市", "taipei city"], 25.033, 121.5654, "TW", "Asia/Taipei"),
            PlaceConfig("Tokyo", ["東京", "东京", "とうきょう"], 35.6762, 139.6503, "JP", "Asia/Tokyo"),
            PlaceConfig("New York", ["nyc", "new york city", "紐約", "纽约", "ニューヨーク"], 40.7128, -74.006, "US", "America/New_York"),
            PlaceConfig("London", ["倫敦", "伦敦", "ロンドン"], 51.5074, -0.1278, "GB", "Europe/London"),
            PlaceConfig("Springfield, Illinois", ["springfield"], 39.7817, -89.6501, "US", "America/Chicago"),
            PlaceConfig("Springfield, Missouri", ["springfield"], 37.209, -93.2923, "US", "America/Chicago"),
        ]
        self.stop_words = ["what", "how", "will", "is", "should", "where", "the", "weather", "in", "at", "for"]

    def _build_index(self) -> None:
        self._alias_index = {}
        for place in self.places:
            for term in place.all_terms():
                bucket = self._alias_index.setdefault(term.lower(), [])
                if place not in bucket:
                    bucket.append(place)

        # Longest aliases first so "new york city" wins over "new york"
        terms = sorted(self._alias_index, key=len, reverse=True)
        escaped_terms = [re.escape(term) for term in terms]
        if escaped_terms:
            self._alias_pattern = re.compile(
                r"(?<![a-z])(" + "|".join(escaped_terms) + r")(?![a-z])"
            )
        else:
            self._alias_pattern = None

    def lookup(self, term: str) -> List[PlaceConfig]:
        """Return every place known under a name or alias"""
        return list(self._alias_index.get(term.strip().lower(), []))

    def find_in_text(self, text: str) -> List[PlaceMatch]:
        """Find known places mentioned in a piece of text, in order of appearance"""
        if self._alias_pattern is None:
            return []
        return [
            PlaceMatch(
                start=match.start(),
                end=match.end(),
                alias=match.group(1),
                places=self.lookup(match.group(1)),
            )
            for match in self._alias_pattern.finditer(text.lower())
        ]

    def is_stop_word(self, word: str) -> bool:
        return word.lower() in self.stop_words

    def reload_config(self) -> None:
        """Reload configuration from file"""
        logger.info("Reloading location configuration...")
        self._load_config()


# Global instance - initialized lazily or by the entry point
location_config: Optional[LocationConfigLoader] = None


def get_location_config() -> LocationConfigLoader:
    """Get the global location configuration instance"""
    global location_config
    if location_config is None:
        location_config = LocationConfigLoader()
    return location_config


def initialize_location_config(config_path: Optional[str] = None) -> LocationConfigLoader:
    """Initialize the global location configuration"""
    global location_config
    location_config = LocationConfigLoader(config_path)
    return location_config


def describe_candidates(places: List[PlaceConfig]) -> Tuple[str, ...]:
    """Human-readable names offered when an alias is ambiguous"""
    return tuple(
        f"{place.name} ({place.country})" if place.country else place.name for place in places
    )
