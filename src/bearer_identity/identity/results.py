"""Result values shared by the credential store, token service and flows.

Learn: The store reports outcomes as IdentityResult values rather than
exceptions, because a failed registration is an ordinary, expected outcome
that the caller shows to the user. The flows then map every outcome onto
one of three response shapes: Ok, BadRequest, ValidationProblem.
"""

from dataclasses import dataclass, field
from typing import Optional, Union


@dataclass(frozen=True)
class IdentityError:
    code: str
    description: str


@dataclass(frozen=True)
class IdentityResult:
    """Outcome of a credential store write.

    errors keeps the order the store reported them in.
    """

    succeeded: bool
    errors: tuple[IdentityError, ...] = ()

    @classmethod
    def success(cls) -> "IdentityResult":
        return cls(succeeded=True)

    @classmethod
    def failed(cls, *errors: IdentityError) -> "IdentityResult":
        return cls(succeeded=False, errors=tuple(errors))

    def error_map(self) -> dict[str, list[str]]:
        """Group descriptions by error code, preserving first-seen order."""
        grouped: dict[str, list[str]] = {}
        for error in self.errors:
            grouped.setdefault(error.code, []).append(error.description)
        return grouped


class IdentityErrors:
    """Factory for the error codes the store can report."""

    @staticmethod
    def default_error() -> IdentityError:
        return IdentityError("DefaultError", "An unknown failure has occurred.")

    @staticmethod
    def duplicate_user_name(username: str) -> IdentityError:
        return IdentityError(
            "DuplicateUserName", f"Username '{username}' is already taken."
        )

    @staticmethod
    def invalid_user_name(username: Optional[str]) -> IdentityError:
        return IdentityError(
            "InvalidUserName",
            f"Username '{username or ''}' is invalid, can only contain letters or digits.",
        )

    @staticmethod
    def login_already_associated() -> IdentityError:
        return IdentityError(
            "LoginAlreadyAssociated", "A user with this login already exists."
        )

    @staticmethod
    def invalid_token() -> IdentityError:
        return IdentityError("InvalidToken", "Invalid token.")

    @staticmethod
    def password_too_short(length: int) -> IdentityError:
        return IdentityError(
            "PasswordTooShort", f"Passwords must be at least {length} characters."
        )

    @staticmethod
    def password_requires_unique_chars(unique_chars: int) -> IdentityError:
        return IdentityError(
            "PasswordRequiresUniqueChars",
            f"Passwords must use at least {unique_chars} different characters.",
        )

    @staticmethod
    def password_requires_non_alphanumeric() -> IdentityError:
        return IdentityError(
            "PasswordRequiresNonAlphanumeric",
            "Passwords must have at least one non alphanumeric character.",
        )

    @staticmethod
    def password_requires_digit() -> IdentityError:
        return IdentityError(
            "PasswordRequiresDigit",
            "Passwords must have at least one digit ('0'-'9').",
        )

    @staticmethod
    def password_requires_lower() -> IdentityError:
        return IdentityError(
            "PasswordRequiresLower",
            "Passwords must have at least one lowercase ('a'-'z').",
        )

    @staticmethod
    def password_requires_upper() -> IdentityError:
        return IdentityError(
            "PasswordRequiresUpper",
            "Passwords must have at least one uppercase ('A'-'Z').",
        )


# ─── Flow outcomes ───────────────────────────────────────


@dataclass(frozen=True)
class AuthTokens:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class Ok:
    """Success. value is None for bare acknowledgments."""

    value: Optional[AuthTokens] = None


@dataclass(frozen=True)
class BadRequest:
    """The generic failure. Carries nothing, by construction."""


@dataclass(frozen=True)
class ValidationProblem:
    errors: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def from_result(cls, result: IdentityResult) -> "ValidationProblem":
        return cls(errors=result.error_map())


Outcome = Union[Ok, BadRequest, ValidationProblem]
