#!/usr/bin/env python3
# MIT License
#
# Copyright (c) 2025 Bolt Forge Contributors
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.


"""
Configuration module for the Bolt Forge auth session manager
Centralizes all configuration values and environment variables
"""

import os
from dataclasses import dataclass, field
from typing import Any

from dotenv import load_dotenv

load_dotenv()


def _split_origins(value: str) -> list[str]:
    return [origin.strip() for origin in value.split(",") if origin.strip()]


@dataclass
class AuthConfig:
    """Configuration for the auth session manager"""

    # Backend selection: "memory" for local development, "appwrite" for the hosted BaaS
    auth_backend: str = field(default_factory=lambda: os.getenv("AUTH_BACKEND", "memory"))

    # Appwrite Configuration
    appwrite_endpoint: str = field(
        default_factory=lambda: os.getenv("APPWRITE_ENDPOINT", "https://cloud.appwrite.io/v1")
    )
    appwrite_project_id: str = field(default_factory=lambda: os.getenv("APPWRITE_PROJECT_ID", ""))
    database_id: str = field(default_factory=lambda: os.getenv("APPWRITE_DATABASE_ID", "bolt-forge-db"))
    profiles_collection_id: str = field(
        default_factory=lambda: os.getenv("APPWRITE_PROFILES_COLLECTION_ID", "profiles")
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.getenv("REQUEST_TIMEOUT", "10"))
    )

    # Retry Configuration
    max_retries: int = field(default_factory=lambda: int(os.getenv("AUTH_MAX_RETRIES", "3")))
    retry_base_delay: float = field(
        default_factory=lambda: float(os.getenv("AUTH_RETRY_BASE_DELAY", "1.0"))
    )

    # Sign-in Rate Limiting (seconds)
    rate_limit_max_attempts: int = field(
        default_factory=lambda: int(os.getenv("RATE_LIMIT_MAX_ATTEMPTS", "5"))
    )
    rate_limit_window: float = field(
        default_factory=lambda: float(os.getenv("RATE_LIMIT_WINDOW", "900"))
    )
    rate_limit_block_duration: float = field(
        default_factory=lambda: float(os.getenv("RATE_LIMIT_BLOCK_DURATION", "900"))
    )

    # Profile Cache Configuration
    profile_cache_ttl: float = field(
        default_factory=lambda: float(os.getenv("PROFILE_CACHE_TTL", "300"))
    )
    profile_cache_size: int = 256

    # Front end origin used for OAuth and password recovery return URLs
    app_origin: str = field(
        default_factory=lambda: os.getenv("APP_ORIGIN", "http://localhost:5173").rstrip("/")
    )

    # HTTP bridge
    http_host: str = field(default_factory=lambda: os.getenv("AUTH_HTTP_HOST", "127.0.0.1"))
    http_port: int = field(default_factory=lambda: int(os.getenv("AUTH_HTTP_PORT", "8087")))
    allowed_origins: list[str] = field(
        default_factory=lambda: _split_origins(
            os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173")
        )
    )

    @property
    def oauth_success_url(self) -> str:
        return f"{self.app_origin}/"

    @property
    def oauth_failure_url(self) -> str:
        return f"{self.app_origin}/?error=oauth_failed"

    @property
    def password_recovery_url(self) -> str:
        return f"{self.app_origin}/auth/reset-password"

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary"""
        return {
            "auth_backend": self.auth_backend,
            "appwrite_endpoint": self.appwrite_endpoint,
            "appwrite_project_id": self.appwrite_project_id,
            "database_id": self.database_id,
            "profiles_collection_id": self.profiles_collection_id,
            "max_retries": self.max_retries,
            "retry_base_delay": self.retry_base_delay,
            "rate_limit_max_attempts": self.rate_limit_max_attempts,
            "rate_limit_window": self.rate_limit_window,
            "rate_limit_block_duration": self.rate_limit_block_duration,
            "profile_cache_ttl": self.profile_cache_ttl,
            "app_origin": self.app_origin,
        }


# Global configuration instance
config = AuthConfig()
