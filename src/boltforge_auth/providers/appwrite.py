"""
Appwrite REST adapter for the identity provider and document store.

Talks to the Appwrite HTTP API with an ``httpx.AsyncClient``. The session
cookie lives in the client's cookie jar; when Appwrite cannot set cookies
it returns an ``X-Fallback-Cookies`` header which is replayed on every
later request, the same way the browser SDK does.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional
from urllib.parse import quote, urlencode

import httpx

from ..errors import (
    AuthError,
    AuthValidationError,
    ConflictError,
    InvalidCredentialsError,
    NetworkError,
    NotFoundError,
    ServerError,
    UnauthenticatedError,
)
from ..models import Session

logger = logging.getLogger(__name__)

FALLBACK_COOKIES_HEADER = "X-Fallback-Cookies"

# Operations where a 401 means the supplied secret was wrong rather than "no session"
_CREDENTIAL_OPERATIONS = frozenset({"create_session", "update_password"})


def equal_query(attribute: str, value: Any) -> str:
    """Serialize an equality query in the Appwrite JSON query syntax."""
    values = value if isinstance(value, list) else [value]
    return json.dumps({"method": "equal", "attribute": attribute, "values": values})


def translate_error(response: httpx.Response, operation: str) -> AuthError:
    """Map an unsuccessful Appwrite response onto the typed error taxonomy."""
    try:
        payload = response.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}

    status = response.status_code
    message = payload.get("message") or response.reason_phrase
    error_type = payload.get("type")
    details = {"code": status, "error_type": error_type}

    if status == 400:
        return AuthValidationError(message, **details)
    if status == 401:
        if error_type == "user_invalid_credentials" or operation in _CREDENTIAL_OPERATIONS:
            return InvalidCredentialsError(message, **details)
        return UnauthenticatedError(message, **details)
    if status == 403:
        return UnauthenticatedError("Permission denied", **details)
    if status == 404:
        return NotFoundError(message, **details)
    if status == 409:
        return ConflictError(message, **details)
    if status == 429:
        return ServerError("Too many requests. Please try again later", **details)
    if status >= 500:
        return ServerError("Server error. Please try again later", **details)
    return AuthError(f"Appwrite operation failed: {message}", **details)


class AppwriteBackend:
    """Identity provider and document store backed by an Appwrite project."""

    def __init__(
        self,
        endpoint: str,
        project_id: str,
        database_id: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the Appwrite adapter.

        Args:
            endpoint: API root, e.g. https://cloud.appwrite.io/v1
            project_id: Appwrite project id
            database_id: Database holding the application collections
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.endpoint = endpoint.rstrip("/")
        self.project_id = project_id
        self.database_id = database_id
        self._fallback_cookies: Optional[str] = None
        self._client = httpx.AsyncClient(
            base_url=self.endpoint,
            timeout=timeout,
            transport=transport,
            headers={
                "X-Appwrite-Project": project_id,
                "Content-Type": "application/json",
            },
        )

    async def __aenter__(self) -> AppwriteBackend:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        json_body: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        headers = {}
        if self._fallback_cookies:
            headers[FALLBACK_COOKIES_HEADER] = self._fallback_cookies

        try:
            response = await self._client.request(
                method, path, json=json_body, params=params, headers=headers
            )
        except httpx.RequestError as e:
            logger.warning(f"Appwrite {operation} could not reach {self.endpoint}: {e}")
            raise NetworkError(f"Network request failed during {operation}") from e

        fallback = response.headers.get(FALLBACK_COOKIES_HEADER)
        if fallback:
            self._fallback_cookies = fallback

        if not response.is_success:
            error = translate_error(response, operation)
            if error.code == 401 and operation == "who_am_i":
                logger.debug("Appwrite reports no active session")
            else:
                logger.error(f"Appwrite error in {operation}: {error.code} {error.error_type} {error.message}")
            raise error

        if response.status_code == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise ServerError(f"Invalid response from Appwrite during {operation}") from e

    def _documents_path(self, collection: str, document_id: Optional[str] = None) -> str:
        path = f"/databases/{self.database_id}/collections/{collection}/documents"
        if document_id:
            path += f"/{quote(document_id, safe='')}"
        return path

    # Identity provider

    async def who_am_i(self) -> Session:
        account = await self._request("GET", "/account", operation="who_am_i")
        return Session.from_account(account)

    async def create_session(self, identifier: str, password: str) -> Session:
        if "@" not in identifier:
            # Appwrite email sessions only accept an email address
            raise AuthValidationError(
                "Sign in with a username is not supported, please use your email address",
                fields={"email_or_username": "Please sign in with your email address"},
            )
        session = await self._request(
            "POST",
            "/account/sessions/email",
            operation="create_session",
            json_body={"email": identifier, "password": password},
        )
        return Session(user_id=session.get("userId", ""), email=session.get("providerUid") or identifier)

    async def create_account(
        self,
        email: str,
        password: str,
        display_name: Optional[str] = None,
        username: Optional[str] = None,
    ) -> str:
        if username:
            logger.debug(f"Appwrite accounts have no username, not storing '{username}'")
        body: dict[str, Any] = {"userId": "unique()", "email": email, "password": password}
        if display_name:
            body["name"] = display_name
        account = await self._request("POST", "/account", operation="create_account", json_body=body)
        return account["$id"]

    async def delete_session(self) -> None:
        try:
            await self._request("DELETE", "/account/sessions/current", operation="delete_session")
        except (UnauthenticatedError, NotFoundError) as e:
            logger.debug(f"No session to delete: {e}")

    def begin_oauth_redirect(self, provider: str, success_url: str, failure_url: str) -> str:
        query = urlencode({"project": self.project_id, "success": success_url, "failure": failure_url})
        return f"{self.endpoint}/account/sessions/oauth2/{quote(provider, safe='')}?{query}"

    async def create_recovery(self, email: str, redirect_url: str) -> None:
        await self._request(
            "POST",
            "/account/recovery",
            operation="create_recovery",
            json_body={"email": email, "url": redirect_url},
        )

    async def update_password(self, new_password: str, old_password: str) -> None:
        await self._request(
            "PATCH",
            "/account/password",
            operation="update_password",
            json_body={"password": new_password, "oldPassword": old_password},
        )

    async def clear_local_artifacts(self) -> None:
        self._client.cookies.clear()
        self._fallback_cookies = None

    # Document store

    async def query(self, collection: str, filters: dict[str, Any]) -> list[dict[str, Any]]:
        queries = [equal_query(key, value) for key, value in filters.items()]
        response = await self._request(
            "GET",
            self._documents_path(collection),
            operation=f"{collection}.query",
            params={"queries[]": queries} if queries else None,
        )
        return list(response.get("documents", [])) if response else []

    async def get_document(self, collection: str, document_id: str) -> dict[str, Any]:
        return await self._request(
            "GET", self._documents_path(collection, document_id), operation=f"{collection}.get"
        )

    async def create_document(
        self,
        collection: str,
        data: dict[str, Any],
        permissions: Optional[list[str]] = None,
        document_id: Optional[str] = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"documentId": document_id or "unique()", "data": data}
        if permissions is not None:
            body["permissions"] = permissions
        return await self._request(
            "POST", self._documents_path(collection), operation=f"{collection}.create", json_body=body
        )

    async def update_document(
        self, collection: str, document_id: str, patch: dict[str, Any]
    ) -> dict[str, Any]:
        return await self._request(
            "PATCH",
            self._documents_path(collection, document_id),
            operation=f"{collection}.update",
            json_body={"data": patch},
        )
