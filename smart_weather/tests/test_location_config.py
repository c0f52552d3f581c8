# test_location_config.py
"""Tests for the known-place dictionary loader."""

import pytest

from smart_weather.query_handlers import location_config as location_config_module
from smart_weather.query_handlers.location_config import (
    LocationConfigLoader,
    describe_candidates,
    get_location_config,
    initialize_location_config,
)

MINIMAL_YAML = """
places:
  - name: Reykjavik
    aliases: [reykjavík, 雷克雅維克]
    lat: 64.1466
    lng: -21.9426
    country: IS
    timezone: Atlantic/Reykjavik
stop_words: [weather, in]
"""


@pytest.fixture
def yaml_file(tmp_path):
    path = tmp_path / "locations.yaml"
    path.write_text(MINIMAL_YAML, encoding="utf-8")
    return path


class TestLoading:
    def test_packaged_dictionary(self, location_config):
        names = {place.name for place in location_config.places}

        assert {"Taipei", "Tokyo", "New York", "London"} <= names
        assert location_config.is_stop_word("What")

    def test_packaged_dictionary_beyond_defaults(self, location_config):
        names = {place.name for place in location_config.places}

        assert {"Kyoto", "Hualien", "Osaka", "Portland, Oregon"} <= names
        assert location_config.lookup("京都")[0].coordinates.lat == pytest.approx(35.0116)
        assert location_config.is_stop_word("On")
        assert location_config.is_stop_word("tomorrow")

    def test_yaml_boolean_words_do_not_discard_file(self, tmp_path):
        path = tmp_path / "locations.yaml"
        path.write_text(
            MINIMAL_YAML.replace("stop_words: [weather, in]", "stop_words: [weather, on, no]"),
            encoding="utf-8",
        )

        loader = LocationConfigLoader(str(path))

        assert [place.name for place in loader.places] == ["Reykjavik"]
        assert loader.stop_words == ["weather", "true", "false"]

    def test_custom_file(self, yaml_file):
        loader = LocationConfigLoader(str(yaml_file))

        assert [place.name for place in loader.places] == ["Reykjavik"]
        assert loader.places[0].timezone == "Atlantic/Reykjavik"
        assert loader.lookup("雷克雅維克")[0].name == "Reykjavik"

    def test_missing_file_uses_defaults(self, tmp_path):
        loader = LocationConfigLoader(str(tmp_path / "missing.yaml"))

        assert loader.lookup("Tokyo")
        assert len(loader.lookup("springfield")) == 2

    def test_broken_file_uses_defaults(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("places: [name: {", encoding="utf-8")

        loader = LocationConfigLoader(str(path))

        assert loader.lookup("Taipei")

    def test_file_without_places_uses_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("stop_words: [weather]\n", encoding="utf-8")

        loader = LocationConfigLoader(str(path))

        assert loader.lookup("London")

    def test_reload_picks_up_changes(self, yaml_file):
        loader = LocationConfigLoader(str(yaml_file))
        yaml_file.write_text(
            MINIMAL_YAML.replace("Reykjavik\n", "Reykjavik City\n", 1), encoding="utf-8"
        )

        loader.reload_config()

        assert loader.places[0].name == "Reykjavik City"


class TestLookup:
    def test_lookup_is_case_insensitive(self, location_config):
        places = location_config.lookup("  TOKYO ")

        assert places[0].coordinates.lat == pytest.approx(35.6762)

    def test_unknown_term(self, location_config):
        assert location_config.lookup("Atlantis") == []

    def test_find_in_text_prefers_longest_alias(self, location_config):
        matches = location_config.find_in_text("weather in New York City today")

        assert matches[0].alias == "new york city"
        assert matches[0].places[0].name == "New York"

    def test_find_in_text_respects_word_boundaries(self, location_config):
        assert location_config.find_in_text("syncing nycthemeral data") == []

    def test_find_in_text_in_cjk(self, location_config):
        matches = location_config.find_in_text("明天台北和東京的天氣")

        assert [match.places[0].name for match in matches] == ["Taipei", "Tokyo"]

    def test_ambiguous_alias(self, location_config):
        match = location_config.find_in_text("springfield weather")[0]

        assert match.is_ambiguous
        assert describe_candidates(match.places) == (
            "Springfield, Illinois (US)",
            "Springfield, Missouri (US)",
        )


class TestGlobalInstance:
    def test_initialize_replaces_global(self, yaml_file, monkeypatch):
        monkeypatch.setattr(location_config_module, "location_config", None)

        loader = initialize_location_config(str(yaml_file))

        assert get_location_config() is loader

    def test_get_creates_lazily(self, monkeypatch):
        monkeypatch.setattr(location_config_module, "location_config", None)

        assert get_location_config() is get_location_config()
