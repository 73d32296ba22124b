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
Auth session manager: establishes, validates and clears the session and
keeps the user's profile available to the UI.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, Optional, TypeVar

from .config import AuthConfig
from .config import config as default_config
from .errors import (
    AuthError,
    ErrorDescriptor,
    ErrorKind,
    InvalidCredentialsError,
    NetworkError,
    OAuthError,
    UnauthenticatedError,
    describe_error,
    is_network_error,
    to_auth_error,
)
from .models import AuthState, Profile, RegistrationData, Session, SignInCredentials
from .profiles import ProfileRepository, default_profile_fields
from .retry import RetryPolicy, retry_with_backoff
from .store import Listener, SessionStore

if TYPE_CHECKING:
    from .providers import DocumentStore, IdentityProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AuthSessionManager:
    """
    Orchestrates sign in, sign up, sign out and session bootstrap.

    One manager owns one :class:`SessionStore`; create one per application
    instance and hand it to the UI layer. Operations run one at a time: a
    single-slot lock serializes them so two overlapping calls cannot
    interleave their store updates.

    Failure policy:
    - initialize/refresh absorb every failure into ``state.error``
    - sign_in/sign_up/update_profile/password operations record the failure
      and re-raise it as an :class:`AuthError`
    - sign_out never fails
    """

    def __init__(
        self,
        identity: IdentityProvider,
        documents: DocumentStore,
        *,
        store: Optional[SessionStore] = None,
        config: Optional[AuthConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.identity = identity
        self.config = config or default_config
        self.store = store or SessionStore()
        self.profiles = ProfileRepository(
            documents,
            collection_id=self.config.profiles_collection_id,
            cache_ttl=self.config.profile_cache_ttl,
            cache_size=self.config.profile_cache_size,
        )
        self.retry_policy = RetryPolicy(
            max_retries=self.config.max_retries, base_delay=self.config.retry_base_delay
        )
        self._sleep = sleep
        self._operation_lock = asyncio.Lock()

    @property
    def state(self) -> AuthState:
        return self.store.get_state()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.store.subscribe(listener)

    async def _with_retry(self, operation: Callable[[], Awaitable[T]], name: str) -> T:
        return await retry_with_backoff(
            operation, self.retry_policy, sleep=self._sleep, operation_name=name
        )

    def _fail(self, error: BaseException, fallback: str) -> AuthError:
        """Record ``error`` in the store and return it as a typed error."""
        self.store.set_state(error=describe_error(error, fallback), is_loading=False)
        return to_auth_error(error)

    async def _discard_stale_session(self) -> None:
        try:
            await self.identity.delete_session()
        except Exception as e:
            # A missing or already invalid session is the normal case here
            logger.debug(f"Could not delete existing session (this is normal): {e}")

    # Session validation

    async def check_session(self) -> Optional[Session]:
        """
        Return the live session, or None when nobody is signed in.

        Transient network failures are retried with backoff.

        Raises:
            NetworkError: The provider stayed unreachable after every retry
            AuthError: Any other non-auth failure (e.g. server errors)
        """
        try:
            return await self._with_retry(self.identity.who_am_i, "who_am_i")
        except Exception as e:
            if is_network_error(e):
                logger.warning(f"Network error while checking session after retries: {e}")
                raise NetworkError() from e
            if isinstance(e, (UnauthenticatedError, InvalidCredentialsError)):
                logger.info(f"Session is invalid or expired: {e}")
                return None
            raise to_auth_error(e)

    async def initialize(self) -> AuthState:
        """
        Resolve any existing session on application start.

        Never raises. ``is_initialized`` becomes True when the first call ends,
        whatever the outcome.
        """
        async with self._operation_lock:
            try:
                await self._resolve_session()
            finally:
                if not self.state.is_initialized:
                    self.store.set_state(is_initialized=True)
        return self.state

    async def refresh(self) -> AuthState:
        """Re-run session resolution, e.g. to recover from an error state."""
        async with self._operation_lock:
            await self._resolve_session()
        return self.state

    async def _resolve_session(self) -> None:
        self.store.set_state(is_loading=True, error=None)

        try:
            user = await self.check_session()
        except Exception as e:
            descriptor = describe_error(e, "Auth initialization failed")
            if descriptor.kind is ErrorKind.NETWORK:
                # A network blip must not sign the user out: keep user and profile
                self.store.set_state(is_loading=False, error=descriptor)
            else:
                logger.error(f"Auth initialization error: {e}")
                self.store.set_state(user=None, profile=None, is_loading=False, error=descriptor)
            return

        if user is None:
            self.store.set_state(user=None, profile=None, is_loading=False, error=None)
            return

        self.store.set_state(user=user)
        await self._load_or_create_profile(user.user_id)

    # Profile bootstrap

    async def load_or_create_profile(self, user_id: Optional[str] = None) -> Optional[Profile]:
        """
        Make sure the signed-in user has a profile and publish it.

        Args:
            user_id: Expected owner; defaults to the current user

        Returns:
            The profile, or None when it could not be loaded (see ``state.error``)
        """
        async with self._operation_lock:
            target = user_id or (self.state.user.user_id if self.state.user else None)
            if target is None:
                self.store.set_state(
                    error=ErrorDescriptor(ErrorKind.UNAUTHENTICATED, "No user logged in"),
                    is_loading=False,
                )
                return None
            return await self._load_or_create_profile(target)

    async def _load_or_create_profile(self, user_id: str) -> Optional[Profile]:
        self.store.set_state(is_loading=True)

        try:
            # Re-check the session is still good before any write
            session = await self.check_session()
            if session is None:
                raise UnauthenticatedError("Session is no longer valid")
            if session.user_id != user_id:
                raise UnauthenticatedError("Session belongs to a different user")

            profile, created = await self.profiles.ensure(user_id, default_profile_fields(session))
            if created:
                logger.info(f"Created default profile for user {user_id}")
        except Exception as e:
            logger.error(f"Profile fetch error: {e}")
            # The user stays signed in; only the profile is missing
            self.store.set_state(error=describe_error(e, "Failed to fetch profile"), is_loading=False)
            return None

        self.store.set_state(profile=profile, is_loading=False)
        return profile

    # Actions

    async def sign_in(self, credentials: SignInCredentials) -> AuthState:
        """
        Sign in with an email (or username) and password.

        The session call is made exactly once; a rejection surfaces
        immediately so the caller can count it against its rate limit.

        Raises:
            AuthError: Recorded in ``state.error`` as well
        """
        async with self._operation_lock:
            self.store.set_state(is_loading=True, error=None)

            try:
                await self._discard_stale_session()
                await self.identity.create_session(credentials.identifier, credentials.password)
                user = await self._with_retry(self.identity.who_am_i, "who_am_i")
            except Exception as e:
                logger.error(f"Sign in error: {e}")
                raise self._fail(e, "Sign in failed")

            logger.info(f"Signed in user {user.user_id}")
            self.store.set_state(user=user)
            await self._load_or_create_profile(user.user_id)
            return self.state

    async def sign_up(self, registration: RegistrationData) -> AuthState:
        """
        Create an account, sign into it and create its profile.

        Raises:
            AuthError: Recorded in ``state.error`` as well
        """
        async with self._operation_lock:
            self.store.set_state(is_loading=True, error=None)

            try:
                await self.identity.create_account(
                    registration.email,
                    registration.password,
                    registration.full_name,
                    username=registration.username,
                )
                await self._discard_stale_session()
                await self.identity.create_session(registration.email, registration.password)
                user = await self._with_retry(self.identity.who_am_i, "who_am_i")
                profile, _ = await self.profiles.ensure(user.user_id, registration.profile_fields())
            except Exception as e:
                logger.error(f"Sign up error: {e}")
                raise self._fail(e, "Sign up failed")

            logger.info(f"Registered user {user.user_id} as {profile.user_type.value}")
            self.store.set_state(user=user, profile=profile, is_loading=False, error=None)
            return self.state

    async def sign_in_with_oauth(self, provider: str) -> str:
        """
        Start an OAuth sign in.

        Returns:
            URL the client must navigate to; the browser comes back to the
            app origin (or ``?error=oauth_failed``) when the flow ends

        Raises:
            OAuthError: The redirect could not be prepared
        """
        async with self._operation_lock:
            self.store.set_state(is_loading=True, error=None)

            try:
                url = self.identity.begin_oauth_redirect(
                    provider, self.config.oauth_success_url, self.config.oauth_failure_url
                )
            except Exception as e:
                logger.error(f"OAuth sign in error for {provider}: {e}")
                error = OAuthError(f"OAuth sign in with {provider} failed: {e}")
                self.store.set_state(error=describe_error(error), is_loading=False)
                raise error from e

            self.store.set_state(is_loading=False)
            return url

    async def complete_oauth(self, error: Optional[str] = None) -> AuthState:
        """Handle the browser's return from the OAuth provider."""
        if error:
            logger.warning(f"OAuth flow returned an error: {error}")
            self.store.set_state(
                error=ErrorDescriptor(ErrorKind.OAUTH, "OAuth sign in failed"), is_loading=False
            )
            return self.state
        return await self.refresh()

    async def sign_out(self) -> AuthState:
        """
        Sign out locally and, best effort, at the identity provider.

        Always leaves the state signed out and never raises.
        """
        async with self._operation_lock:
            self.store.set_state(is_loading=True, error=None)

            try:
                await self.identity.delete_session()
            except Exception as e:
                logger.warning(f"Remote sign out failed (continuing): {e}")

            try:
                await self.identity.clear_local_artifacts()
            except Exception as e:
                logger.warning(f"Could not clear local auth artifacts: {e}")

            self.profiles.clear_cache()
            self.store.set_state(user=None, profile=None, is_loading=False, error=None)
            return self.state

    async def update_profile(self, updates: dict[str, Any]) -> Profile:
        """
        Apply an explicit profile edit for the signed-in user.

        Raises:
            UnauthenticatedError: Nobody is signed in or the profile is missing
            AuthError: Update rejected, recorded in ``state.error`` as well
        """
        async with self._operation_lock:
            state = self.state
            if state.user is None or state.profile is None:
                raise UnauthenticatedError("No user logged in")

            self.store.set_state(is_loading=True, error=None)
            try:
                profile = await self.profiles.update(state.profile, updates)
            except Exception as e:
                logger.error(f"Profile update error: {e}")
                raise self._fail(e, "Profile update failed")

            self.store.set_state(profile=profile, is_loading=False)
            return profile

    async def reset_password(self, email: str) -> None:
        """Send a password recovery message for ``email``."""
        self.store.set_state(error=None)
        try:
            await self.identity.create_recovery(email, self.config.password_recovery_url)
        except Exception as e:
            logger.error(f"Password reset error: {e}")
            self.store.set_state(error=describe_error(e, "Password reset failed"))
            raise to_auth_error(e)

    async def update_password(self, new_password: str, old_password: str) -> None:
        """Change the signed-in user's password."""
        self.store.set_state(error=None)
        try:
            await self.identity.update_password(new_password, old_password)
        except Exception as e:
            logger.error(f"Password update error: {e}")
            self.store.set_state(error=describe_error(e, "Password update failed"))
            raise to_auth_error(e)

    def clear_error(self) -> None:
        self.store.set_state(error=None)
