"""
Tests for configuration and backend selection.
"""

import pytest

from boltforge_auth.config import AuthConfig
from boltforge_auth.providers import get_backend
from boltforge_auth.providers.appwrite import AppwriteBackend
from boltforge_auth.providers.memory import InMemoryBackend


class TestAuthConfig:
    """Test environment driven configuration"""

    def test_defaults(self, monkeypatch):
        for name in ("AUTH_BACKEND", "AUTH_MAX_RETRIES", "RATE_LIMIT_MAX_ATTEMPTS", "APP_ORIGIN"):
            monkeypatch.delenv(name, raising=False)

        config = AuthConfig()

        assert config.auth_backend == "memory"
        assert config.max_retries == 3
        assert config.rate_limit_max_attempts == 5
        assert config.rate_limit_window == 900.0
        assert config.database_id

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("AUTH_MAX_RETRIES", "5")
        monkeypatch.setenv("APP_ORIGIN", "https://boltforge.example/")
        monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.example, https://b.example")

        config = AuthConfig()

        assert config.max_retries == 5
        assert config.app_origin == "https://boltforge.example"
        assert config.allowed_origins == ["https://a.example", "https://b.example"]

    def test_return_urls(self):
        config = AuthConfig(app_origin="https://boltforge.example")

        assert config.oauth_success_url == "https://boltforge.example/"
        assert config.oauth_failure_url == "https://boltforge.example/?error=oauth_failed"
        assert config.password_recovery_url == "https://boltforge.example/auth/reset-password"

    def test_to_dict(self):
        data = AuthConfig(auth_backend="memory").to_dict()

        assert data["auth_backend"] == "memory"
        assert "rate_limit_block_duration" in data


class TestGetBackend:
    """Test backend factory"""

    def test_memory_backend(self):
        identity, documents = get_backend(AuthConfig(auth_backend="memory"))

        assert isinstance(identity, InMemoryBackend)
        assert identity is documents

    @pytest.mark.asyncio
    async def test_appwrite_backend(self):
        identity, documents = get_backend(
            AuthConfig(auth_backend="appwrite", appwrite_project_id="proj-1")
        )

        assert isinstance(identity, AppwriteBackend)
        assert identity.project_id == "proj-1"
        await identity.aclose()

    def test_appwrite_requires_project(self):
        with pytest.raises(ValueError):
            get_backend(AuthConfig(auth_backend="appwrite", appwrite_project_id=""))

    def test_unknown_backend_falls_back(self):
        identity, _ = get_backend(AuthConfig(auth_backend="firebase"))

        assert isinstance(identity, InMemoryBackend)
