#!/usr/bin/env python3
"""
Bolt Forge Auth
Session management for the Bolt Forge marketplace front end: sign in,
sign up, OAuth, profile bootstrap and a rate limited sign in form.

All logging goes to stderr.
"""

import logging
import os
import sys
from typing import Optional

logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "WARNING").upper(), logging.WARNING),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

from .config import AuthConfig, config  # noqa: E402
from .errors import AuthError, ErrorKind  # noqa: E402
from .forms import AuthFormController  # noqa: E402
from .manager import AuthSessionManager  # noqa: E402
from .models import AuthState, Profile, Session, UserType  # noqa: E402
from .providers import get_backend  # noqa: E402
from .rate_limit import RateLimitConfig, RateLimiterManager  # noqa: E402

__all__ = [
    "AuthConfig",
    "AuthError",
    "AuthFormController",
    "AuthSessionManager",
    "AuthState",
    "ErrorKind",
    "Profile",
    "Session",
    "UserType",
    "create_controller",
    "create_manager",
    "main",
]

SIGN_IN_LIMITER = "sign_in"


def create_manager(auth_config: Optional[AuthConfig] = None) -> AuthSessionManager:
    """Create a session manager wired to the configured backend."""
    auth_config = auth_config or config
    identity, documents = get_backend(auth_config)
    return AuthSessionManager(identity, documents, config=auth_config)


def create_controller(
    manager: AuthSessionManager,
    auth_config: Optional[AuthConfig] = None,
    limiters: Optional[RateLimiterManager] = None,
) -> AuthFormController:
    """Create the form controller with a sign in limiter built from config."""
    auth_config = auth_config or config
    limiters = limiters or RateLimiterManager()
    limiter = limiters.get_or_create(
        SIGN_IN_LIMITER,
        RateLimitConfig(
            max_attempts=auth_config.rate_limit_max_attempts,
            window=auth_config.rate_limit_window,
            block_duration=auth_config.rate_limit_block_duration,
        ),
    )
    return AuthFormController(manager, limiter)


def main() -> None:
    """Run the local HTTP bridge with uvicorn."""
    import uvicorn

    from .transports import create_http_app

    host, port = config.http_host, config.http_port
    logger.info(f"Starting Bolt Forge auth bridge on {host}:{port}")

    try:
        manager = create_manager(config)
        app = create_http_app(manager, create_controller(manager, config), config)

        # Run with uvicorn
        server_config = uvicorn.Config(
            app=app,
            host=host,
            port=port,
            log_level="warning",  # Reduce uvicorn logging, let our logger handle it
            access_log=False,
        )
        uvicorn.Server(server_config).run()
    except KeyboardInterrupt:
        logger.info("Server shutdown requested")
    except Exception:
        logger.exception("Server error")
        raise
