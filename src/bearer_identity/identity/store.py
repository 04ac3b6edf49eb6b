"""SQL credential store — users, passwords, external logins, confirmation.

Learn: This is the system of record the identity flows talk to. Every write
commits on its own and is arbitrated by database constraints:
- users.normalized_username is unique → concurrent registrations of the same
  name produce exactly one user; the loser gets DuplicateUserName
- (login_provider, provider_key) is unique → an external identity links to
  at most one user; the loser gets LoginAlreadyAssociated

The pre-insert lookups only produce friendlier errors in the common case.
An IntegrityError on commit is the real answer and is mapped to the same
error codes.
"""

import secrets
import uuid
from typing import Optional

import structlog
from sqlalchemy import delete, inspect, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bearer_identity.auth.jwt import TokenError, create_purpose_token, verify_token
from bearer_identity.auth.password import hash_password, needs_rehash, verify_password
from bearer_identity.config import Settings, settings as default_settings
from bearer_identity.db.models import User, UserLogin
from bearer_identity.identity.protocols import SignInPolicy
from bearer_identity.identity.results import IdentityErrors, IdentityResult
from bearer_identity.identity.validators import PasswordPolicy, UsernamePolicy

logger = structlog.get_logger()

EMAIL_CONFIRMATION_PURPOSE = "email_confirmation"


def normalize_username(username: str) -> str:
    return username.upper()


def new_security_stamp() -> str:
    return secrets.token_hex(16)


class SqlCredentialStore:
    """Credential store backed by the users and user_logins tables."""

    def __init__(self, db: AsyncSession, settings: Settings = default_settings):
        self.db = db
        self.settings = settings
        self.password_policy = PasswordPolicy.from_settings(settings)
        self.username_policy = UsernamePolicy(settings.allowed_username_characters)

    @property
    def sign_in_policy(self) -> SignInPolicy:
        return SignInPolicy(
            require_confirmed_email=self.settings.require_confirmed_email,
            require_confirmed_phone=self.settings.require_confirmed_phone,
        )

    # ─── Lookups ────────────────────────────────────────

    async def find_by_username(self, username: Optional[str]) -> Optional[User]:
        if not username:
            return None
        result = await self.db.execute(
            select(User).where(User.normalized_username == normalize_username(username))
        )
        return result.scalars().first()

    async def find_by_id(self, user_id: str) -> Optional[User]:
        try:
            key = uuid.UUID(user_id)
        except (ValueError, TypeError):
            return None
        return await self.db.get(User, key)

    async def find_by_login(self, provider: str, provider_key: str) -> Optional[User]:
        result = await self.db.execute(
            select(User)
            .join(UserLogin, UserLogin.user_id == User.id)
            .where(
                UserLogin.login_provider == provider,
                UserLogin.provider_key == provider_key,
            )
        )
        return result.scalars().first()

    # ─── Writes ─────────────────────────────────────────

    async def create_user(
        self, username: Optional[str], password: Optional[str] = None
    ) -> tuple[IdentityResult, Optional[User]]:
        """Create a user, with a password hash when a password is given.

        Username and password errors are reported together.
        """
        errors = self.username_policy.validate(username)
        if not errors and await self.find_by_username(username) is not None:
            errors.append(IdentityErrors.duplicate_user_name(username))
        if password is not None:
            errors.extend(self.password_policy.validate(password))
        if errors:
            return IdentityResult.failed(*errors), None

        user = User(
            username=username,
            normalized_username=normalize_username(username),
            security_stamp=new_security_stamp(),
        )
        if password is not None:
            user.password_hash = hash_password(password, self.settings.bcrypt_rounds)

        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.info("identity.user_conflict")
            return IdentityResult.failed(IdentityErrors.duplicate_user_name(username)), None

        logger.info(
            "identity.user_created",
            user_id=str(user.id),
            has_password=password is not None,
        )
        return IdentityResult.success(), user

    async def add_login(
        self,
        user: User,
        provider: str,
        provider_key: str,
        display_name: Optional[str] = None,
    ) -> IdentityResult:
        if await self.find_by_login(provider, provider_key) is not None:
            return IdentityResult.failed(IdentityErrors.login_already_associated())

        self.db.add(
            UserLogin(
                user_id=user.id,
                login_provider=provider,
                provider_key=provider_key,
                provider_display_name=display_name,
            )
        )
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.info("identity.login_conflict", provider=provider)
            return IdentityResult.failed(IdentityErrors.login_already_associated())

        logger.info("identity.login_added", user_id=str(user.id), provider=provider)
        return IdentityResult.success()

    async def delete_user(self, user: User) -> None:
        """Remove a user that was never linked. Safe on an expired instance."""
        # identity is read from instance state; user.id would reload after a rollback
        (user_id,) = inspect(user).identity
        await self.db.execute(
            delete(User)
            .where(User.id == user_id)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        self.db.expunge(user)
        logger.info("identity.user_deleted", user_id=str(user_id))

    # ─── Password ───────────────────────────────────────

    async def check_password(self, user: User, password: Optional[str]) -> bool:
        if not user.password_hash or password is None:
            return False
        if not verify_password(password, user.password_hash):
            return False

        if needs_rehash(user.password_hash, self.settings.bcrypt_rounds):
            user.password_hash = hash_password(password, self.settings.bcrypt_rounds)
            await self.db.commit()
            logger.info("identity.password_rehashed", user_id=str(user.id))
        return True

    # ─── Confirmation state ─────────────────────────────

    async def is_email_confirmed(self, user: User) -> bool:
        return user.email_confirmed

    async def is_phone_number_confirmed(self, user: User) -> bool:
        return user.phone_number_confirmed

    async def generate_email_confirmation_token(self, user: User) -> str:
        return create_purpose_token(
            str(user.id),
            EMAIL_CONFIRMATION_PURPOSE,
            user.security_stamp,
            self.settings.email_confirmation_expire_hours,
            settings=self.settings,
        )

    async def confirm_email(self, user: User, token: str) -> IdentityResult:
        try:
            payload = verify_token(
                token,
                expected_type=EMAIL_CONFIRMATION_PURPOSE,
                settings=self.settings,
            )
        except TokenError:
            return IdentityResult.failed(IdentityErrors.invalid_token())

        if payload["sub"] != str(user.id) or payload.get("stamp") != user.security_stamp:
            return IdentityResult.failed(IdentityErrors.invalid_token())

        user.email_confirmed = True
        await self.db.commit()
        logger.info("identity.email_confirmed", user_id=str(user.id))
        return IdentityResult.success()
