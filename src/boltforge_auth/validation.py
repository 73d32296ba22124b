"""
Form schemas for the sign in, sign up and password screens.

Each form accepts snake_case or camelCase keys so payloads coming straight
from a browser front end validate unchanged. ``parse_form`` turns pydantic
errors into an :class:`AuthValidationError` carrying one message per field.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Annotated, Any, Optional, TypeVar

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel

from .errors import AuthValidationError
from .models import RegistrationData, SignInCredentials, UserType

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]{3,20}$")
PHONE_PATTERN = re.compile(r"^\+?[\d\s\-\(\)]+$")
SPECIAL_CHARACTER_PATTERN = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")

FormT = TypeVar("FormT", bound="AuthForm")


def check_email(value: str) -> str:
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Please enter a valid email address")
    return value


def check_password_strength(value: str) -> str:
    """Enforce the password rules shared by sign up and password change."""
    if len(value) < 8:
        raise ValueError("Password must be at least 8 characters long")
    if not re.search(r"[A-Z]", value):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", value):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"\d", value):
        raise ValueError("Password must contain at least one number")
    if not SPECIAL_CHARACTER_PATTERN.search(value):
        raise ValueError("Password must contain at least one special character")
    return value


Email = Annotated[str, AfterValidator(check_email)]
StrongPassword = Annotated[str, AfterValidator(check_password_strength)]


class AuthForm(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        loc_by_alias=False,
        extra="ignore",
    )


class SignInForm(AuthForm):
    email_or_username: str
    password: str

    @field_validator("email_or_username")
    @classmethod
    def _validate_identifier(cls, v: str) -> str:
        if not v:
            raise ValueError("Email or username is required")
        if not (EMAIL_PATTERN.match(v) or USERNAME_PATTERN.match(v)):
            raise ValueError("Please enter a valid email address or username")
        return v

    @field_validator("password")
    @classmethod
    def _validate_password(cls, v: str) -> str:
        if not v:
            raise ValueError("Password is required")
        return v

    def to_credentials(self) -> SignInCredentials:
        return SignInCredentials(identifier=self.email_or_username, password=self.password)


class SignUpForm(AuthForm):
    email: Email
    username: str
    password: StrongPassword
    confirm_password: str
    full_name: Optional[str] = None
    phone: Optional[str] = None
    user_type: UserType
    company_name: Optional[str] = Field(default=None, validate_default=True)
    location: Optional[str] = None
    agree_to_terms: bool

    @field_validator("username")
    @classmethod
    def _validate_username(cls, v: str) -> str:
        if len(v) < 3:
            raise ValueError("Username must be at least 3 characters long")
        if len(v) > 20:
            raise ValueError("Username must be no more than 20 characters long")
        if not USERNAME_PATTERN.match(v):
            raise ValueError("Username can only contain letters, numbers, and underscores")
        return v

    @field_validator("confirm_password")
    @classmethod
    def _validate_confirmation(cls, v: str, info: ValidationInfo) -> str:
        password = info.data.get("password")
        if password is not None and v != password:
            raise ValueError("Passwords do not match")
        return v

    @field_validator("full_name")
    @classmethod
    def _validate_full_name(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v) < 2:
            raise ValueError("Full name must be at least 2 characters")
        return v

    @field_validator("phone")
    @classmethod
    def _validate_phone(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        if not PHONE_PATTERN.match(v):
            raise ValueError("Please enter a valid phone number")
        if len(v) < 10:
            raise ValueError("Phone number must be at least 10 digits")
        return v

    @field_validator("user_type", mode="before")
    @classmethod
    def _validate_user_type(cls, v: Any) -> Any:
        if v not in (UserType.DEVELOPER.value, UserType.COMPANY.value):
            raise ValueError("Please select an account type")
        return v

    @field_validator("company_name")
    @classmethod
    def _validate_company_name(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        if info.data.get("user_type") is UserType.COMPANY and (not v or len(v) < 2):
            raise ValueError("Company name is required for company accounts")
        return v or None

    @field_validator("agree_to_terms")
    @classmethod
    def _validate_terms(cls, v: bool) -> bool:
        if v is not True:
            raise ValueError("You must agree to the terms and conditions")
        return v

    def to_registration(self) -> RegistrationData:
        return RegistrationData(
            email=self.email,
            password=self.password,
            username=self.username,
            full_name=self.full_name,
            user_type=self.user_type,
            company_name=self.company_name,
            location=self.location or None,
            phone=self.phone,
        )


class PasswordResetForm(AuthForm):
    email: Email


class ChangePasswordForm(AuthForm):
    current_password: str
    new_password: StrongPassword
    confirm_new_password: str

    @field_validator("current_password")
    @classmethod
    def _validate_current(cls, v: str) -> str:
        if not v:
            raise ValueError("Current password is required")
        return v

    @field_validator("confirm_new_password")
    @classmethod
    def _validate_confirmation(cls, v: str, info: ValidationInfo) -> str:
        new_password = info.data.get("new_password")
        if new_password is not None and v != new_password:
            raise ValueError("Passwords do not match")
        return v


def _error_message(error: dict[str, Any]) -> str:
    ctx_error = (error.get("ctx") or {}).get("error")
    if ctx_error is not None:
        return str(ctx_error)
    return error["msg"]


def parse_form(model: type[FormT], data: Any) -> FormT:
    """
    Validate ``data`` against a form model.

    Raises:
        AuthValidationError: With the first message for each failing field
    """
    try:
        return model.model_validate(data)
    except ValidationError as e:
        fields: dict[str, str] = {}
        for error in e.errors():
            name = ".".join(str(part) for part in error["loc"]) or "__root__"
            fields.setdefault(name, _error_message(error))
        logger.debug(f"{model.__name__} rejected: {sorted(fields)}")
        raise AuthValidationError("Please correct the highlighted fields", fields=fields) from e


@dataclass(frozen=True)
class PasswordStrength:
    score: int
    feedback: list[str] = field(default_factory=list)
    strength: str = "weak"


def password_strength(password: str) -> PasswordStrength:
    """Score a password from 0 to 6 for a strength meter."""
    score = 0
    feedback: list[str] = []

    checks = [
        (len(password) >= 8, "Use at least 8 characters"),
        (re.search(r"[a-z]", password) is not None, "Add lowercase letters"),
        (re.search(r"[A-Z]", password) is not None, "Add uppercase letters"),
        (re.search(r"\d", password) is not None, "Add numbers"),
        (SPECIAL_CHARACTER_PATTERN.search(password) is not None, "Add special characters"),
    ]
    for passed, hint in checks:
        if passed:
            score += 1
        else:
            feedback.append(hint)

    if len(password) >= 12:
        score += 1

    if score <= 2:
        strength = "weak"
    elif score == 3:
        strength = "fair"
    elif score == 4:
        strength = "good"
    else:
        strength = "strong"

    return PasswordStrength(score=score, feedback=feedback, strength=strength)
