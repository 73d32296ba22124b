"""
Profile repository and the bootstrap helpers that guarantee one profile
per user.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from cachetools import TTLCache  # type: ignore[import-untyped]

from .errors import AuthValidationError, ConflictError
from .models import DEFAULT_FULL_NAME, EDITABLE_PROFILE_FIELDS, Profile, Session, UserType

if TYPE_CHECKING:
    from .providers import DocumentStore

logger = logging.getLogger(__name__)

PROFILES_COLLECTION = "profiles"


def _coerce_user_type(value: Any) -> UserType:
    try:
        return UserType(value)
    except ValueError:
        raise AuthValidationError(
            f"Unknown user type: {value}", fields={"user_type": "Please select an account type"}
        ) from None


def permission(action: str, role: str) -> str:
    """Format a document permission, e.g. ``read("any")`` or ``update("user:<id>")``."""
    return f'{action}("{role}")'


def owner_permissions(user_id: str) -> list[str]:
    """Anyone may read a profile; only its owner may change or delete it."""
    owner = f"user:{user_id}"
    return [
        permission("read", "any"),
        permission("update", owner),
        permission("delete", owner),
    ]


def default_profile_fields(session: Session) -> dict[str, Any]:
    """Minimal profile for a session that has none (e.g. first OAuth sign in)."""
    return {
        "user_type": UserType.DEVELOPER,
        "full_name": session.display_name or DEFAULT_FULL_NAME,
    }


class ProfileRepository:
    """
    Profile documents keyed by user id.

    The document id of a profile is the owner's user id, so a second create
    for the same user is rejected by the store as a conflict. Lookups are
    cached for ``cache_ttl`` seconds.
    """

    def __init__(
        self,
        store: DocumentStore,
        collection_id: str = PROFILES_COLLECTION,
        cache_ttl: float = 300.0,
        cache_size: int = 256,
    ):
        self.store = store
        self.collection_id = collection_id
        self._cache: TTLCache = TTLCache(maxsize=cache_size, ttl=cache_ttl)

    def _remember(self, profile: Profile) -> Profile:
        self._cache[profile.user_id] = profile
        return profile

    def invalidate(self, user_id: str) -> None:
        self._cache.pop(user_id, None)

    def clear_cache(self) -> None:
        self._cache.clear()

    async def find_by_user_id(self, user_id: str, use_cache: bool = True) -> Optional[Profile]:
        """Return the user's profile or None when it does not exist yet."""
        if use_cache and user_id in self._cache:
            logger.debug(f"Profile cache hit: {user_id}")
            return self._cache[user_id]

        documents = await self.store.query(self.collection_id, {"user_id": user_id})
        if not documents:
            return None

        if len(documents) > 1:
            logger.warning(f"Found {len(documents)} profiles for user {user_id}, using the first")
        return self._remember(Profile.from_document(documents[0]))

    async def create(self, user_id: str, fields: dict[str, Any]) -> Profile:
        """
        Create the profile document for ``user_id``.

        Raises:
            AuthValidationError: No profile data supplied
            ConflictError: The user already has a profile
        """
        if not fields:
            raise AuthValidationError("Empty data object provided for create")

        data = dict(fields)
        data["user_type"] = _coerce_user_type(data.get("user_type", UserType.DEVELOPER))
        profile = Profile(user_id=user_id, **data)
        document = await self.store.create_document(
            self.collection_id,
            profile.to_document(),
            permissions=owner_permissions(user_id),
            document_id=user_id,
        )
        logger.info(f"Created profile for user {user_id}")
        return self._remember(Profile.from_document(document))

    async def ensure(self, user_id: str, fields: dict[str, Any]) -> tuple[Profile, bool]:
        """
        Return the user's profile, creating it from ``fields`` if missing.

        A conflict on create means another bootstrap got there first; the
        existing document is read back and treated as the result.

        Returns:
            Tuple of (profile, created)
        """
        existing = await self.find_by_user_id(user_id, use_cache=False)
        if existing is not None:
            return existing, False

        try:
            return await self.create(user_id, fields), True
        except ConflictError:
            logger.info(f"Profile for user {user_id} already exists, reading it back")
            existing = await self.find_by_user_id(user_id, use_cache=False)
            if existing is None:
                raise
            return existing, False

    async def update(self, profile: Profile, patch: dict[str, Any]) -> Profile:
        """
        Apply a user edit to ``profile``.

        Raises:
            AuthValidationError: Empty patch or non-editable fields
        """
        if not patch:
            raise AuthValidationError("Empty data object provided for update")

        rejected = sorted(set(patch) - EDITABLE_PROFILE_FIELDS)
        if rejected:
            raise AuthValidationError(
                f"Fields cannot be edited: {', '.join(rejected)}",
                fields={name: "This field cannot be edited" for name in rejected},
            )

        data = dict(patch)
        if "user_type" in data:
            data["user_type"] = _coerce_user_type(data["user_type"]).value

        document_id = profile.document_id or profile.user_id
        document = await self.store.update_document(self.collection_id, document_id, data)
        return self._remember(Profile.from_document(document))
