"""
Tests for form validation.
"""

import pytest

from boltforge_auth.errors import AuthValidationError
from boltforge_auth.models import UserType
from boltforge_auth.validation import (
    ChangePasswordForm,
    PasswordResetForm,
    SignInForm,
    SignUpForm,
    parse_form,
    password_strength,
)


def sign_up_data(**overrides):
    data = {
        "email": "ada@example.com",
        "username": "ada_l",
        "password": "Str0ng!pw",
        "confirmPassword": "Str0ng!pw",
        "fullName": "Ada Lovelace",
        "userType": "developer",
        "agreeToTerms": True,
    }
    data.update(overrides)
    return data


class TestSignInForm:
    """Test sign in form validation"""

    @pytest.mark.parametrize("identifier", ["ada@example.com", "ada_l", "abc"])
    def test_accepts_email_or_username(self, identifier):
        form = parse_form(SignInForm, {"emailOrUsername": identifier, "password": "x"})
        assert form.email_or_username == identifier

    def test_accepts_snake_case_keys(self):
        form = parse_form(SignInForm, {"email_or_username": "ada_l", "password": "x"})

        assert form.email_or_username == "ada_l"

    @pytest.mark.parametrize("identifier", ["ab", "not an email", "a" * 21])
    def test_rejects_invalid_identifier(self, identifier):
        with pytest.raises(AuthValidationError) as exc_info:
            parse_form(SignInForm, {"emailOrUsername": identifier, "password": "x"})

        assert exc_info.value.fields["email_or_username"] == "Please enter a valid email address or username"

    def test_requires_password(self):
        with pytest.raises(AuthValidationError) as exc_info:
            parse_form(SignInForm, {"emailOrUsername": "ada_l", "password": ""})

        assert exc_info.value.fields == {"password": "Password is required"}

    def test_missing_fields(self):
        with pytest.raises(AuthValidationError) as exc_info:
            parse_form(SignInForm, {})

        assert set(exc_info.value.fields) == {"email_or_username", "password"}

    def test_to_credentials(self):
        form = parse_form(SignInForm, {"emailOrUsername": "ada_l", "password": "secret"})
        credentials = form.to_credentials()

        assert credentials.identifier == "ada_l"
        assert credentials.password == "secret"


class TestSignUpForm:
    """Test sign up form validation"""

    def test_valid_developer(self):
        form = parse_form(SignUpForm, sign_up_data())

        assert form.user_type is UserType.DEVELOPER
        assert form.company_name is None

    @pytest.mark.parametrize(
        "password,message",
        [
            ("Sh0rt!", "Password must be at least 8 characters long"),
            ("lower0!case", "Password must contain at least one uppercase letter"),
            ("UPPER0!CASE", "Password must contain at least one lowercase letter"),
            ("NoDigits!!", "Password must contain at least one number"),
            ("NoSpecial12", "Password must contain at least one special character"),
        ],
    )
    def test_password_rules(self, password, message):
        with pytest.raises(AuthValidationError) as exc_info:
            parse_form(SignUpForm, sign_up_data(password=password, confirmPassword=password))

        assert exc_info.value.fields["password"] == message

    def test_password_confirmation(self):
        with pytest.raises(AuthValidationError) as exc_info:
            parse_form(SignUpForm, sign_up_data(confirmPassword="Different1!"))

        assert exc_info.value.fields == {"confirm_password": "Passwords do not match"}

    def test_company_requires_company_name(self):
        with pytest.raises(AuthValidationError) as exc_info:
            parse_form(SignUpForm, sign_up_data(userType="company"))

        assert exc_info.value.fields == {
            "company_name": "Company name is required for company accounts"
        }

    def test_company_with_name(self):
        form = parse_form(SignUpForm, sign_up_data(userType="company", companyName="Acme"))

        assert form.user_type is UserType.COMPANY
        assert form.to_registration().company_name == "Acme"

    def test_unknown_user_type(self):
        with pytest.raises(AuthValidationError) as exc_info:
            parse_form(SignUpForm, sign_up_data(userType="admin"))

        assert exc_info.value.fields["user_type"] == "Please select an account type"

    def test_terms_must_be_accepted(self):
        with pytest.raises(AuthValidationError) as exc_info:
            parse_form(SignUpForm, sign_up_data(agreeToTerms=False))

        assert exc_info.value.fields == {
            "agree_to_terms": "You must agree to the terms and conditions"
        }

    @pytest.mark.parametrize(
        "username,message",
        [
            ("ab", "Username must be at least 3 characters long"),
            ("a" * 21, "Username must be no more than 20 characters long"),
            ("ada-l", "Username can only contain letters, numbers, and underscores"),
        ],
    )
    def test_username_rules(self, username, message):
        with pytest.raises(AuthValidationError) as exc_info:
            parse_form(SignUpForm, sign_up_data(username=username))

        assert exc_info.value.fields["username"] == message

    def test_phone_rules(self):
        assert parse_form(SignUpForm, sign_up_data(phone="")).phone is None
        assert parse_form(SignUpForm, sign_up_data(phone="+1 (555) 123-4567")).phone == "+1 (555) 123-4567"

        with pytest.raises(AuthValidationError) as exc_info:
            parse_form(SignUpForm, sign_up_data(phone="call me"))
        assert exc_info.value.fields["phone"] == "Please enter a valid phone number"

        with pytest.raises(AuthValidationError) as exc_info:
            parse_form(SignUpForm, sign_up_data(phone="555-1234"))
        assert exc_info.value.fields["phone"] == "Phone number must be at least 10 digits"

    def test_short_full_name(self):
        with pytest.raises(AuthValidationError) as exc_info:
            parse_form(SignUpForm, sign_up_data(fullName="A"))

        assert exc_info.value.fields["full_name"] == "Full name must be at least 2 characters"

    def test_invalid_email(self):
        with pytest.raises(AuthValidationError) as exc_info:
            parse_form(SignUpForm, sign_up_data(email="ada@example"))

        assert exc_info.value.fields["email"] == "Please enter a valid email address"

    def test_to_registration(self):
        registration = parse_form(SignUpForm, sign_up_data(location="London")).to_registration()

        assert registration.email == "ada@example.com"
        assert registration.username == "ada_l"
        assert registration.full_name == "Ada Lovelace"
        assert registration.user_type is UserType.DEVELOPER
        assert registration.profile_fields() == {
            "full_name": "Ada Lovelace",
            "user_type": UserType.DEVELOPER,
            "location": "London",
        }


class TestPasswordForms:
    """Test password reset and change forms"""

    def test_reset_requires_valid_email(self):
        assert parse_form(PasswordResetForm, {"email": "ada@example.com"}).email == "ada@example.com"

        with pytest.raises(AuthValidationError):
            parse_form(PasswordResetForm, {"email": "nope"})

    def test_change_password(self):
        form = parse_form(
            ChangePasswordForm,
            {"currentPassword": "old", "newPassword": "N3w!passw", "confirmNewPassword": "N3w!passw"},
        )

        assert form.current_password == "old"
        assert form.new_password == "N3w!passw"

    def test_change_password_mismatch(self):
        with pytest.raises(AuthValidationError) as exc_info:
            parse_form(
                ChangePasswordForm,
                {"currentPassword": "old", "newPassword": "N3w!passw", "confirmNewPassword": "other"},
            )

        assert exc_info.value.fields == {"confirm_new_password": "Passwords do not match"}

    def test_change_password_requires_current(self):
        with pytest.raises(AuthValidationError) as exc_info:
            parse_form(
                ChangePasswordForm,
                {"currentPassword": "", "newPassword": "N3w!passw", "confirmNewPassword": "N3w!passw"},
            )

        assert exc_info.value.fields == {"current_password": "Current password is required"}


class TestPasswordStrength:
    """Test the password strength meter"""

    def test_empty_password(self):
        result = password_strength("")

        assert result.score == 0
        assert result.strength == "weak"
        assert len(result.feedback) == 5

    def test_fair_password(self):
        result = password_strength("abcdefgh1")

        assert result.score == 3
        assert result.strength == "fair"
        assert result.feedback == ["Add uppercase letters", "Add special characters"]

    def test_good_password(self):
        assert password_strength("Abcdefgh1").strength == "good"

    def test_strong_password(self):
        result = password_strength("Str0ng!password")

        assert result.score == 6
        assert result.strength == "strong"
        assert result.feedback == []
