"""
Collaborator interfaces consumed by the auth session manager.

Architecture:
- IdentityProvider Protocol: account, session and OAuth primitives
- DocumentStore Protocol: JSON documents with owner-based permissions
- InMemoryBackend: default for local development and tests
- AppwriteBackend: Appwrite REST API over httpx
- Factory: get_backend() selects based on AUTH_BACKEND
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from ..config import AuthConfig
from ..config import config as default_config
from ..models import Session
from .appwrite import AppwriteBackend
from .memory import InMemoryBackend

__all__ = [
    "AppwriteBackend",
    "DocumentStore",
    "IdentityProvider",
    "InMemoryBackend",
    "get_backend",
]

logger = logging.getLogger(__name__)


class IdentityProvider(Protocol):
    """Identity provider interface.

    Implementations raise the typed errors from ``boltforge_auth.errors``
    so the manager can tell network failures from auth rejections.
    """

    async def who_am_i(self) -> Session:
        """Return the user behind the current session.

        Raises:
            UnauthenticatedError: No valid session
            NetworkError: Provider unreachable
        """
        ...

    async def create_session(self, identifier: str, password: str) -> Session:
        """Create a password session for an email address or username.

        Raises:
            InvalidCredentialsError: Identifier or password rejected
            AuthValidationError: The provider cannot sign in with this kind of identifier
            ServerError: Provider failure
        """
        ...

    async def create_account(
        self,
        email: str,
        password: str,
        display_name: Optional[str] = None,
        username: Optional[str] = None,
    ) -> str:
        """Create an account and return its id.

        Raises:
            ConflictError: Email or username already registered
            AuthValidationError: Provider rejected the payload
        """
        ...

    async def delete_session(self) -> None:
        """Delete the current session. Deleting an absent session is not a failure."""
        ...

    def begin_oauth_redirect(self, provider: str, success_url: str, failure_url: str) -> str:
        """Return the URL the client must navigate to for an OAuth sign in."""
        ...

    async def create_recovery(self, email: str, redirect_url: str) -> None:
        """Send a password recovery message."""
        ...

    async def update_password(self, new_password: str, old_password: str) -> None:
        """Change the password of the signed-in account."""
        ...

    async def clear_local_artifacts(self) -> None:
        """Forget client-held auth artifacts the provider does not own."""
        ...


class DocumentStore(Protocol):
    """Document store interface with owner-based permissions."""

    async def query(self, collection: str, filters: dict[str, Any]) -> list[dict[str, Any]]:
        """Return documents whose attributes equal every filter value."""
        ...

    async def get_document(self, collection: str, document_id: str) -> dict[str, Any]:
        """Fetch one document.

        Raises:
            NotFoundError: No such document
        """
        ...

    async def create_document(
        self,
        collection: str,
        data: dict[str, Any],
        permissions: Optional[list[str]] = None,
        document_id: Optional[str] = None,
    ) -> dict[str, Any]:
        """Create a document.

        Raises:
            ConflictError: A document with ``document_id`` already exists
        """
        ...

    async def update_document(
        self, collection: str, document_id: str, patch: dict[str, Any]
    ) -> dict[str, Any]:
        """Apply a partial update and return the stored document."""
        ...


def get_backend(config: Optional[AuthConfig] = None) -> tuple[IdentityProvider, DocumentStore]:
    """Factory function returning the identity provider and document store.

    Selects the backend based on ``AUTH_BACKEND``:
    - "memory" or unset: InMemoryBackend (default - local development)
    - "appwrite": AppwriteBackend (hosted Appwrite project)

    Returns:
        Tuple of (identity provider, document store); both may be the same object
    """
    config = config or default_config
    backend_type = (config.auth_backend or "memory").lower()

    if backend_type == "memory":
        logger.info("Auth backend: in-memory")
        backend: Any = InMemoryBackend()
        return backend, backend

    elif backend_type == "appwrite":
        if not config.appwrite_project_id:
            raise ValueError("APPWRITE_PROJECT_ID must be set for the appwrite backend")
        logger.info(f"Auth backend: Appwrite at {config.appwrite_endpoint}")
        backend = AppwriteBackend(
            endpoint=config.appwrite_endpoint,
            project_id=config.appwrite_project_id,
            database_id=config.database_id,
            timeout=config.request_timeout,
        )
        return backend, backend

    else:
        logger.warning(
            f"Unknown AUTH_BACKEND '{backend_type}', using in-memory backend. Valid options: memory, appwrite"
        )
        backend = InMemoryBackend()
        return backend, backend
