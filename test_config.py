import pytest
from datetime import timedelta
from pydantic import ValidationError

from choreograph.core.config import Settings, parse_duration


class TestDurations:
    """Тесты разбора сроков жизни токенов"""

    @pytest.mark.parametrize("value, expected", [
        ("15m", timedelta(minutes=15)),
        ("12h", timedelta(hours=12)),
        ("7d", timedelta(days=7)),
    ])
    def test_valid(self, value, expected):
        assert parse_duration(value) == expected

    @pytest.mark.parametrize("value", ["15", "m15", "1w", "", "1.5h", "-3d"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_duration(value)


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("ACCESS_TOKEN_EXPIRY", raising=False)
        monkeypatch.delenv("REFRESH_TOKEN_EXPIRY", raising=False)

        settings = Settings(_env_file=None)

        assert settings.access_token_ttl == timedelta(minutes=15)
        assert settings.refresh_token_ttl == timedelta(days=7)

    def test_invalid_expiry_fails_at_load(self, monkeypatch):
        """Неверный формат срока - ошибка при загрузке настроек, а не в запросе"""
        monkeypatch.setenv("ACCESS_TOKEN_EXPIRY", "fifteen minutes")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_cors_origins_split(self):
        settings = Settings(_env_file=None, CORS_ORIGINS="http://a.example, http://b.example,")

        assert settings.cors_origins == ["http://a.example", "http://b.example"]
