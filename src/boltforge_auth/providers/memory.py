"""
In-process identity provider and document store.

Used for local development and tests. Mirrors the behavior the manager
relies on from the hosted backend: guests get ``UnauthenticatedError``,
duplicate document ids raise ``ConflictError``, deleting an absent
session is a no-op.
"""

from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import urlencode

from ..errors import (
    AuthValidationError,
    ConflictError,
    InvalidCredentialsError,
    NetworkError,
    NotFoundError,
    UnauthenticatedError,
)
from ..models import Session

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class _Account:
    user_id: str
    email: str
    password: str = field(repr=False)
    name: Optional[str] = None
    username: Optional[str] = None


class InMemoryBackend:
    """Identity provider and document store backed by dictionaries.

    Attributes:
        offline: When True every call raises ``NetworkError``
        recovery_requests: (email, redirect_url) pairs sent by create_recovery
    """

    def __init__(self, oauth_base_url: str = "https://auth.invalid/oauth2"):
        self.offline = False
        self.oauth_base_url = oauth_base_url.rstrip("/")
        self.recovery_requests: list[tuple[str, str]] = []
        self._accounts: dict[str, _Account] = {}
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._current_user_id: Optional[str] = None

    def _check_online(self) -> None:
        if self.offline:
            raise NetworkError("Network request failed: browser is offline")

    def _find_account(self, identifier: str) -> Optional[_Account]:
        identifier = identifier.strip().lower()
        for account in self._accounts.values():
            if account.email.lower() == identifier or (account.username or "").lower() == identifier:
                return account
        return None

    @staticmethod
    def _session_for(account: _Account) -> Session:
        return Session(user_id=account.user_id, email=account.email, display_name=account.name)

    # Identity provider

    async def who_am_i(self) -> Session:
        self._check_online()
        if self._current_user_id is None:
            raise UnauthenticatedError("User (role: guests) missing scope (account)", code=401)
        return self._session_for(self._accounts[self._current_user_id])

    async def create_session(self, identifier: str, password: str) -> Session:
        self._check_online()
        account = self._find_account(identifier)
        if account is None or account.password != password:
            raise InvalidCredentialsError(
                "Invalid credentials. Please check the email and password.",
                code=401,
                error_type="user_invalid_credentials",
            )
        self._current_user_id = account.user_id
        return self._session_for(account)

    async def create_account(
        self,
        email: str,
        password: str,
        display_name: Optional[str] = None,
        username: Optional[str] = None,
    ) -> str:
        self._check_online()
        if not email or not password:
            raise AuthValidationError("Email and password are required", code=400)
        if self._find_account(email) is not None:
            raise ConflictError(
                "A user with the same email already exists", code=409, error_type="user_already_exists"
            )
        if username and self._find_account(username) is not None:
            raise ConflictError(
                "A user with the same username already exists",
                code=409,
                error_type="user_already_exists",
            )
        user_id = uuid.uuid4().hex
        self._accounts[user_id] = _Account(user_id, email, password, display_name, username)
        return user_id

    async def delete_session(self) -> None:
        self._check_online()
        self._current_user_id = None

    def begin_oauth_redirect(self, provider: str, success_url: str, failure_url: str) -> str:
        query = urlencode({"success": success_url, "failure": failure_url})
        return f"{self.oauth_base_url}/{provider}?{query}"

    async def create_recovery(self, email: str, redirect_url: str) -> None:
        self._check_online()
        # Unknown emails are accepted silently so accounts cannot be enumerated
        self.recovery_requests.append((email, redirect_url))

    async def update_password(self, new_password: str, old_password: str) -> None:
        self._check_online()
        if self._current_user_id is None:
            raise UnauthenticatedError(code=401)
        account = self._accounts[self._current_user_id]
        if account.password != old_password:
            raise InvalidCredentialsError("Invalid credentials: current password is incorrect", code=401)
        account.password = new_password

    async def clear_local_artifacts(self) -> None:
        return None

    # Document store

    def _collection(self, collection: str) -> dict[str, dict[str, Any]]:
        return self._collections.setdefault(collection, {})

    async def query(self, collection: str, filters: dict[str, Any]) -> list[dict[str, Any]]:
        self._check_online()
        return [
            copy.deepcopy(document)
            for document in self._collection(collection).values()
            if all(document.get(key) == value for key, value in filters.items())
        ]

    async def get_document(self, collection: str, document_id: str) -> dict[str, Any]:
        self._check_online()
        document = self._collection(collection).get(document_id)
        if document is None:
            raise NotFoundError(code=404)
        return copy.deepcopy(document)

    async def create_document(
        self,
        collection: str,
        data: dict[str, Any],
        permissions: Optional[list[str]] = None,
        document_id: Optional[str] = None,
    ) -> dict[str, Any]:
        self._check_online()
        documents = self._collection(collection)
        document_id = document_id or uuid.uuid4().hex
        if document_id in documents:
            raise ConflictError(
                "Document with the requested ID already exists",
                code=409,
                error_type="document_already_exists",
            )
        timestamp = _now()
        document = {
            **copy.deepcopy(data),
            "$id": document_id,
            "$collectionId": collection,
            "$createdAt": timestamp,
            "$updatedAt": timestamp,
            "$permissions": list(permissions or []),
        }
        documents[document_id] = document
        logger.debug(f"Created document {collection}/{document_id}")
        return copy.deepcopy(document)

    async def update_document(
        self, collection: str, document_id: str, patch: dict[str, Any]
    ) -> dict[str, Any]:
        self._check_online()
        documents = self._collection(collection)
        if document_id not in documents:
            raise NotFoundError(code=404)
        document = documents[document_id]
        document.update(copy.deepcopy(patch))
        document["$updatedAt"] = _now()
        return copy.deepcopy(document)
