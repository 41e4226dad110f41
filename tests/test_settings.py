import pytest
from pydantic import ValidationError

from triply.settings import (
    GeocoderSettings,
    LocationSettings,
    OSRMSettings,
    Settings,
    SuggestionSettings,
    get_settings,
)


@pytest.mark.unit
class TestGeocoderSettings:
    def test_defaults(self):
        settings = GeocoderSettings()
        assert settings.search_limit == 5
        assert settings.min_query_length == 3
        assert settings.debounce_seconds == 0.5

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("GEOCODER_BASE_URL", "http://nominatim:8080/")
        monkeypatch.setenv("GEOCODER_LANGUAGE", "en")

        settings = GeocoderSettings()
        assert settings.base_url == "http://nominatim:8080"
        assert settings.language == "en"

    def test_validation(self):
        with pytest.raises(ValidationError):
            GeocoderSettings(base_url="nominatim.local")

        with pytest.raises(ValidationError):
            GeocoderSettings(search_limit=10)


@pytest.mark.unit
class TestLocationSettings:
    def test_fix_timeout_default(self):
        assert LocationSettings().fix_timeout_seconds == 8.0

    def test_fix_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            LocationSettings(fix_timeout_seconds=0)


@pytest.mark.unit
class TestOSRMSettings:
    def test_defaults(self):
        settings = OSRMSettings()
        assert settings.base_url == "https://router.project-osrm.org"
        assert settings.max_retries == 3

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("OSRM_BASE_URL", "http://osrm:5000")
        monkeypatch.setenv("OSRM_MAX_RETRIES", "5")

        settings = OSRMSettings()
        assert settings.base_url == "http://osrm:5000"
        assert settings.max_retries == 5


@pytest.mark.unit
class TestSuggestionSettings:
    def test_key_from_env(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "secret")

        assert SuggestionSettings().api_key == "secret"

    def test_counts_non_negative(self):
        with pytest.raises(ValidationError):
            SuggestionSettings(suggestion_count=-1)


@pytest.mark.unit
class TestSettings:
    def test_nested_sections(self):
        settings = Settings()
        assert settings.redis.port == 6379
        assert settings.logging.format == "text"

    def test_get_settings(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")

        assert get_settings().logging.level == "DEBUG"
