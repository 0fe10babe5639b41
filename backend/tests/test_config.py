"""
Tests for settings helpers: CORS origins, database URL selection, Graph base URL.
"""
import pytest
from unittest.mock import Mock

from killscale.config import Settings, get_cors_origins
from killscale.database import normalize_database_url


class TestGetCorsOrigins:
    """Tests for get_cors_origins function."""

    def test_frontend_base_url_only(self):
        settings = Mock(spec=Settings)
        settings.frontend_base_url = "http://localhost:3000"
        settings.get_additional_cors_origins.return_value = []

        assert get_cors_origins(settings) == ["http://localhost:3000"]

    def test_deduplicates_and_drops_invalid(self):
        """Duplicates collapse, entries without scheme/host are filtered out."""
        settings = Mock(spec=Settings)
        settings.frontend_base_url = "https://app.killscale.com/"
        settings.get_additional_cors_origins.return_value = [
            "https://app.killscale.com",
            "not-a-valid-url",
            "https://staging.killscale.com:8443",
        ]

        origins = get_cors_origins(settings)

        assert origins == ["https://app.killscale.com", "https://staging.killscale.com:8443"]

    def test_invalid_frontend_base_url(self):
        settings = Mock(spec=Settings)
        settings.frontend_base_url = "not-a-valid-url"
        settings.get_additional_cors_origins.return_value = ["https://example.com"]

        assert get_cors_origins(settings) == ["https://example.com"]


class TestAdditionalCorsOrigins:
    """ADDITIONAL_CORS_ORIGINS accepts a JSON list or a comma-separated string."""

    def test_comma_separated(self):
        settings = Settings(additional_cors_origins="https://a.com, https://b.com ,")
        assert settings.get_additional_cors_origins() == ["https://a.com", "https://b.com"]

    def test_json_list(self):
        settings = Settings(additional_cors_origins='["https://a.com", " ", "https://b.com"]')
        assert settings.get_additional_cors_origins() == ["https://a.com", "https://b.com"]

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_empty(self, value):
        settings = Settings(additional_cors_origins=value)
        assert settings.get_additional_cors_origins() == []


class TestDatabaseUrl:
    def test_public_url_preferred(self, monkeypatch):
        monkeypatch.setenv("DATABASE_PUBLIC_URL", "postgresql://public/db")
        monkeypatch.setenv("DATABASE_URL", "postgresql://internal/db")
        assert Settings().get_database_url() == "postgresql://public/db"

    def test_internal_url_without_public(self, monkeypatch):
        monkeypatch.delenv("DATABASE_PUBLIC_URL", raising=False)
        monkeypatch.setenv("DATABASE_URL", "postgresql://internal/db")
        assert Settings(database_public_url="").get_database_url() == "postgresql://internal/db"

    @pytest.mark.parametrize("url, expected", [
        ("postgresql://u:p@host/db", "postgresql+psycopg://u:p@host/db"),
        ("postgres://u:p@host/db", "postgresql+psycopg://u:p@host/db"),
        ("postgresql+psycopg://u:p@host/db", "postgresql+psycopg://u:p@host/db"),
        ("sqlite:///./killscale.db", "sqlite:///./killscale.db"),
    ])
    def test_normalize_database_url(self, url, expected):
        assert normalize_database_url(url) == expected


def test_graph_api_base_uses_configured_version():
    settings = Settings(meta_graph_api_version="v21.0")
    assert settings.meta_graph_api_base == "https://graph.facebook.com/v21.0"


def test_pacing_defaults():
    settings = Settings()
    assert settings.bulk_status_batch_size == 10
    assert settings.bulk_status_batch_delay_ms == 100
    assert settings.bulk_delete_delay_ms == 150
    assert settings.bulk_budget_batch_size == 5
    assert settings.bulk_budget_batch_delay_ms == 200
    assert settings.utm_cache_ttl_seconds == 300
    assert settings.insights_cache_ttl_seconds == 86400
