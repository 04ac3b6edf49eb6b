"""Token service — JWT access tokens and rotating refresh tokens.

Learn: Refresh tokens are opaque random strings. Only their SHA-256 digest
is stored, so a database leak does not leak usable tokens.

Rotation rules:
- each refresh token is single-use; refreshing consumes it and issues the
  next token in the same family
- the consume step is a conditional UPDATE (consumed_at IS NULL), so when
  two requests race on one token exactly one of them wins
- presenting a token that was already consumed means it was copied; the
  whole family is revoked, logging out both the thief and the victim
"""

import hashlib
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bearer_identity.auth.jwt import create_access_token, verify_token
from bearer_identity.config import Settings, settings as default_settings
from bearer_identity.db.models import RefreshToken, User, utcnow

logger = structlog.get_logger()


def hash_refresh_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlTokenService:
    """Issues access tokens and rotates refresh tokens stored in refresh_tokens."""

    def __init__(self, db: AsyncSession, settings: Settings = default_settings):
        self.db = db
        self.settings = settings

    async def get_access_token(self, user: User) -> str:
        return create_access_token(str(user.id), settings=self.settings)

    async def get_refresh_token(
        self, user: User, family_id: Optional[uuid.UUID] = None
    ) -> str:
        """Issue a refresh token. A new family starts unless one is given."""
        token = secrets.token_urlsafe(32)
        self.db.add(
            RefreshToken(
                user_id=user.id,
                family_id=family_id or uuid.uuid4(),
                token_hash=hash_refresh_token(token),
                expires_at=utcnow()
                + timedelta(days=self.settings.refresh_token_expire_days),
            )
        )
        await self.db.commit()
        return token

    async def refresh_tokens(
        self, refresh_token: str
    ) -> tuple[Optional[str], Optional[str]]:
        # populate_existing: the conditional UPDATEs below bypass the identity map.
        result = await self.db.execute(
            select(RefreshToken)
            .where(RefreshToken.token_hash == hash_refresh_token(refresh_token))
            .execution_options(populate_existing=True)
        )
        stored = result.scalars().first()

        if stored is None or stored.revoked_at is not None:
            return None, None

        # Plain values; a rollback below expires the ORM instance.
        token_id, user_id, family_id = stored.id, stored.user_id, stored.family_id

        if stored.consumed_at is not None:
            await self.revoke_family(family_id)
            logger.warning(
                "identity.refresh_reuse_detected",
                user_id=str(user_id),
                family_id=str(family_id),
            )
            return None, None

        now = utcnow()
        if _as_utc(stored.expires_at) <= now:
            return None, None

        consumed = await self.db.execute(
            update(RefreshToken)
            .where(
                RefreshToken.id == token_id,
                RefreshToken.consumed_at.is_(None),
                RefreshToken.revoked_at.is_(None),
            )
            .values(consumed_at=now)
            .execution_options(synchronize_session=False)
        )
        if consumed.rowcount != 1:
            # Lost the race to a concurrent refresh of the same token.
            await self.db.rollback()
            await self.revoke_family(family_id)
            logger.warning(
                "identity.refresh_race_lost",
                user_id=str(user_id),
                family_id=str(family_id),
            )
            return None, None

        user = await self.db.get(User, user_id)
        if user is None:
            await self.db.commit()
            return None, None

        access_token = await self.get_access_token(user)
        new_refresh_token = await self.get_refresh_token(user, family_id=family_id)
        logger.info("identity.tokens_refreshed", user_id=str(user.id))
        return access_token, new_refresh_token

    async def revoke_family(self, family_id: uuid.UUID) -> None:
        await self.db.execute(
            update(RefreshToken)
            .where(
                RefreshToken.family_id == family_id,
                RefreshToken.revoked_at.is_(None),
            )
            .values(revoked_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

    def verify_access_token(self, token: str) -> dict:
        """Decode an access token. Raises TokenError when invalid."""
        return verify_token(token, expected_type="access", settings=self.settings)
