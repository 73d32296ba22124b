"""
Form-level composition: validation, rate limiting and the session manager.
"""

import logging
from typing import Any

from .errors import AuthError, ErrorKind, RateLimitExceededError
from .manager import AuthSessionManager
from .models import AuthState
from .rate_limit import RateLimiter, RateLimitStatus
from .validation import (
    ChangePasswordForm,
    PasswordResetForm,
    SignInForm,
    SignUpForm,
    parse_form,
)

logger = logging.getLogger(__name__)

# Failures that say nothing about the submitted credentials
_UNCOUNTED_KINDS = frozenset({ErrorKind.NETWORK, ErrorKind.VALIDATION})


class AuthFormController:
    """
    What the sign in and sign up screens call on submit.

    The sign in form is guarded by ``limiter``: while it is locked out no
    request reaches the identity provider, and each rejected attempt counts
    toward the lockout. Network failures and local validation errors are
    not counted.
    """

    def __init__(self, manager: AuthSessionManager, limiter: RateLimiter):
        self.manager = manager
        self.limiter = limiter

    def _ensure_not_locked(self) -> None:
        status = self.limiter.get_status()
        if status.is_blocked:
            logger.info(f"Sign in refused, locked out for {status.remaining_time}s")
            raise RateLimitExceededError(status.remaining_time, status.attempts_remaining)

    async def submit_sign_in(self, data: dict[str, Any]) -> AuthState:
        self._ensure_not_locked()
        form = parse_form(SignInForm, data)

        try:
            state = await self.manager.sign_in(form.to_credentials())
        except AuthError as e:
            if e.kind not in _UNCOUNTED_KINDS:
                allowed = self.limiter.record_attempt()
                if not allowed:
                    logger.warning("Sign in attempts exhausted, lockout started")
            raise

        self.limiter.reset()
        return state

    async def submit_sign_up(self, data: dict[str, Any]) -> AuthState:
        form = parse_form(SignUpForm, data)
        return await self.manager.sign_up(form.to_registration())

    async def submit_password_reset(self, data: dict[str, Any]) -> None:
        form = parse_form(PasswordResetForm, data)
        await self.manager.reset_password(form.email)

    async def submit_password_change(self, data: dict[str, Any]) -> None:
        form = parse_form(ChangePasswordForm, data)
        await self.manager.update_password(form.new_password, form.current_password)

    async def submit_oauth(self, provider: str) -> str:
        return await self.manager.sign_in_with_oauth(provider)

    def lockout_status(self) -> RateLimitStatus:
        return self.limiter.get_status()
