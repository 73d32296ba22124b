"""
Data models for the auth session manager.

Kept free of provider and store imports so adapters and the manager can
share them without circular imports.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Optional

from .errors import ErrorDescriptor

DEFAULT_FULL_NAME = "New User"


class UserType(str, Enum):
    """Marketplace account type."""

    DEVELOPER = "developer"
    COMPANY = "company"


@dataclass(frozen=True)
class Session:
    """Authenticated identity handle issued by the identity provider.

    Attributes:
        user_id: Opaque identifier assigned by the identity provider
        email: Account email address
        display_name: Name chosen at registration or by the OAuth provider
    """

    user_id: str
    email: Optional[str] = None
    display_name: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    @classmethod
    def from_account(cls, account: dict[str, Any]) -> Session:
        """Build a session from an identity payload (``$id``, ``email``, ``name``)."""
        return cls(
            user_id=account.get("$id") or account.get("userId") or "",
            email=account.get("email") or account.get("providerUid"),
            display_name=account.get("name") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "email": self.email,
            "display_name": self.display_name,
            "is_authenticated": self.is_authenticated,
        }


@dataclass
class Profile:
    """User-owned marketplace profile document.

    One profile exists per ``user_id``. Reputation fields are maintained
    elsewhere and only read here.
    """

    user_id: str
    user_type: UserType = UserType.DEVELOPER
    full_name: str = DEFAULT_FULL_NAME
    document_id: Optional[str] = None

    # Contact and company details
    company_name: Optional[str] = None
    company_industry: Optional[str] = None
    company_size: Optional[str] = None
    location: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    website: Optional[str] = None
    github_username: Optional[str] = None
    linkedin_username: Optional[str] = None
    hourly_rate: Optional[float] = None

    # Reputation
    total_earnings: float = 0.0
    total_projects: int = 0
    success_rate: Optional[float] = None
    average_rating: Optional[float] = None
    is_verified: bool = False
    is_featured: bool = False

    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> Profile:
        """Build a profile from a store document, ignoring unknown attributes."""
        known = {f.name for f in fields(cls)}
        data = {key: value for key, value in document.items() if key in known and value is not None}
        data["document_id"] = document.get("$id", document.get("document_id"))
        data["created_at"] = document.get("$createdAt", document.get("created_at"))
        data["updated_at"] = document.get("$updatedAt", document.get("updated_at"))
        data["user_type"] = UserType(document.get("user_type", UserType.DEVELOPER.value))
        return cls(**data)

    def to_document(self) -> dict[str, Any]:
        """Serialize the writable attributes, skipping unset optionals."""
        data = asdict(self)
        for key in ("document_id", "created_at", "updated_at"):
            data.pop(key)
        data["user_type"] = self.user_type.value
        return {key: value for key, value in data.items() if value is not None}

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["user_type"] = self.user_type.value
        return data


# Fields a user may change through an explicit profile edit
EDITABLE_PROFILE_FIELDS = frozenset(
    {
        "user_type",
        "full_name",
        "company_name",
        "company_industry",
        "company_size",
        "location",
        "phone",
        "avatar_url",
        "bio",
        "website",
        "github_username",
        "linkedin_username",
        "hourly_rate",
    }
)


@dataclass(frozen=True)
class AuthState:
    """Observable snapshot held by the session store."""

    user: Optional[Session] = None
    profile: Optional[Profile] = None
    is_loading: bool = False
    error: Optional[ErrorDescriptor] = None
    is_initialized: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and self.user.is_authenticated

    def to_dict(self) -> dict[str, Any]:
        return {
            "user": self.user.to_dict() if self.user else None,
            "profile": self.profile.to_dict() if self.profile else None,
            "is_loading": self.is_loading,
            "error": self.error.to_dict() if self.error else None,
            "is_initialized": self.is_initialized,
            "is_authenticated": self.is_authenticated,
        }


@dataclass(frozen=True)
class SignInCredentials:
    identifier: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class RegistrationData:
    """Payload for creating an account plus its profile."""

    email: str
    password: str = field(repr=False)
    username: Optional[str] = None
    full_name: Optional[str] = None
    user_type: UserType = UserType.DEVELOPER
    company_name: Optional[str] = None
    location: Optional[str] = None
    phone: Optional[str] = None

    def profile_fields(self) -> dict[str, Any]:
        """Profile attributes carried by the registration form."""
        data: dict[str, Any] = {
            "full_name": self.full_name or "",
            "user_type": UserType(self.user_type),
            "company_name": self.company_name,
            "location": self.location,
            "phone": self.phone,
        }
        return {key: value for key, value in data.items() if value is not None}
