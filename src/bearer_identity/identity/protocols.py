"""Capability interfaces the identity flows depend on.

Learn: The flows never touch a concrete user record. They hold whatever
handle the store hands back and pass it to the store or the token service.
Any pair of objects satisfying these protocols can be plugged in; the SQL
implementations live in identity.store and identity.tokens.
"""

from dataclasses import dataclass
from typing import Any, Optional, Protocol

from bearer_identity.identity.results import IdentityResult


@dataclass(frozen=True)
class SignInPolicy:
    require_confirmed_email: bool = False
    require_confirmed_phone: bool = False


class CredentialStore(Protocol):
    @property
    def sign_in_policy(self) -> SignInPolicy: ...

    async def create_user(
        self, username: Optional[str], password: Optional[str] = None
    ) -> tuple[IdentityResult, Optional[Any]]:
        """Create a user, setting the password when given, as one operation."""
        ...

    async def find_by_username(self, username: Optional[str]) -> Optional[Any]: ...

    async def find_by_login(self, provider: str, provider_key: str) -> Optional[Any]: ...

    async def find_by_id(self, user_id: str) -> Optional[Any]: ...

    async def add_login(
        self,
        user: Any,
        provider: str,
        provider_key: str,
        display_name: Optional[str] = None,
    ) -> IdentityResult: ...

    async def delete_user(self, user: Any) -> None: ...

    async def check_password(self, user: Any, password: Optional[str]) -> bool: ...

    async def is_email_confirmed(self, user: Any) -> bool: ...

    async def is_phone_number_confirmed(self, user: Any) -> bool: ...

    async def generate_email_confirmation_token(self, user: Any) -> str: ...

    async def confirm_email(self, user: Any, token: str) -> IdentityResult: ...


class TokenService(Protocol):
    async def get_access_token(self, user: Any) -> str: ...

    async def get_refresh_token(self, user: Any) -> str: ...

    async def refresh_tokens(
        self, refresh_token: str
    ) -> tuple[Optional[str], Optional[str]]:
        """Validate and rotate. (None, None) means the token was refused."""
        ...
