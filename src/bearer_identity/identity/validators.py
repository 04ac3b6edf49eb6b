"""Username and password policy checks.

Learn: Validators return every failure they find instead of stopping at
the first, so a registration form can show all password rules the user
broke in one round trip.
"""

from dataclasses import dataclass
from typing import Optional

from bearer_identity.config import Settings
from bearer_identity.identity.results import IdentityError, IdentityErrors


def _is_digit(c: str) -> bool:
    return "0" <= c <= "9"


def _is_lower(c: str) -> bool:
    return "a" <= c <= "z"


def _is_upper(c: str) -> bool:
    return "A" <= c <= "Z"


def _is_letter_or_digit(c: str) -> bool:
    return _is_digit(c) or _is_lower(c) or _is_upper(c)


@dataclass(frozen=True)
class PasswordPolicy:
    required_length: int = 5
    required_unique_chars: int = 1
    require_non_alphanumeric: bool = True
    require_digit: bool = True
    require_lowercase: bool = True
    require_uppercase: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "PasswordPolicy":
        return cls(
            required_length=settings.password_required_length,
            required_unique_chars=settings.password_required_unique_chars,
            require_non_alphanumeric=settings.password_require_non_alphanumeric,
            require_digit=settings.password_require_digit,
            require_lowercase=settings.password_require_lowercase,
            require_uppercase=settings.password_require_uppercase,
        )

    def validate(self, password: str) -> list[IdentityError]:
        errors = []
        if len(password) < self.required_length:
            errors.append(IdentityErrors.password_too_short(self.required_length))
        if self.require_non_alphanumeric and all(_is_letter_or_digit(c) for c in password):
            errors.append(IdentityErrors.password_requires_non_alphanumeric())
        if self.require_digit and not any(_is_digit(c) for c in password):
            errors.append(IdentityErrors.password_requires_digit())
        if self.require_lowercase and not any(_is_lower(c) for c in password):
            errors.append(IdentityErrors.password_requires_lower())
        if self.require_uppercase and not any(_is_upper(c) for c in password):
            errors.append(IdentityErrors.password_requires_upper())
        if (
            self.required_unique_chars >= 1
            and len(set(password)) < self.required_unique_chars
        ):
            errors.append(
                IdentityErrors.password_requires_unique_chars(self.required_unique_chars)
            )
        return errors


@dataclass(frozen=True)
class UsernamePolicy:
    allowed_characters: str = ""

    def validate(self, username: Optional[str]) -> list[IdentityError]:
        """Shape checks only; uniqueness is the store's job."""
        if username is None or not username.strip():
            return [IdentityErrors.invalid_user_name(username)]
        if self.allowed_characters and any(
            c not in self.allowed_characters for c in username
        ):
            return [IdentityErrors.invalid_user_name(username)]
        return []
