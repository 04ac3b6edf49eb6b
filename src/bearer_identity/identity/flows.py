"""Identity flows — the decision pipelines behind the /identity endpoints.

Learn: Each flow is a short, strictly sequential chain of awaited calls
against the credential store and the token service; each step gates the
next. Flows hold no state between calls and never log.

Failure discipline:
- Login, refresh and email confirmation collapse every failure into the
  same BadRequest, so callers cannot tell "no such user" from "wrong
  password" from "email not confirmed".
- Register and external login return ValidationProblem with the store's
  errors, since duplicate usernames and weak passwords are safe to report.
- An undecodable confirmation code is not a failure outcome at all: the
  ValueError propagates to the transport.
"""

import base64
import binascii
import re
from typing import Optional

from bearer_identity.identity.protocols import CredentialStore, TokenService
from bearer_identity.identity.results import (
    AuthTokens,
    BadRequest,
    Ok,
    Outcome,
    ValidationProblem,
)


_CODE_ALPHABET = re.compile(r"[A-Za-z0-9_-]*")


def encode_confirmation_code(token: str) -> str:
    """URL-safe base64 without padding, the form sent in confirmation links."""
    return base64.urlsafe_b64encode(token.encode("utf-8")).rstrip(b"=").decode("ascii")


def decode_confirmation_code(code: str) -> str:
    """Inverse of encode_confirmation_code.

    Raises ValueError (binascii.Error or UnicodeDecodeError) on malformed input.
    """
    # urlsafe only: "+", "/" and padding are not part of the link format
    if not _CODE_ALPHABET.fullmatch(code):
        raise binascii.Error("Confirmation code is not unpadded base64url")
    padded = code + "=" * (-len(code) % 4)
    raw = base64.b64decode(padded, altchars=b"-_", validate=True)
    return raw.decode("utf-8")


class IdentityFlows:
    """Register, login, external login, refresh and email confirmation."""

    def __init__(self, store: CredentialStore, tokens: TokenService):
        self.store = store
        self.tokens = tokens

    async def _issue(self, user) -> Ok:
        access_token = await self.tokens.get_access_token(user)
        refresh_token = await self.tokens.get_refresh_token(user)
        return Ok(AuthTokens(access_token, refresh_token))

    # ─── Register ────────────────────────────────────────

    async def register(self, username: str, password: str) -> Outcome:
        """Create a password account. Does not sign the user in."""
        result, _ = await self.store.create_user(username, password)
        if result.succeeded:
            return Ok()
        return ValidationProblem.from_result(result)

    # ─── Password login ─────────────────────────────────

    async def password_login(self, username: str, password: str) -> Outcome:
        user = await self.store.find_by_username(username)
        if user is None:
            return BadRequest()

        policy = self.store.sign_in_policy
        if policy.require_confirmed_email and not await self.store.is_email_confirmed(user):
            return BadRequest()
        if policy.require_confirmed_phone and not await self.store.is_phone_number_confirmed(user):
            return BadRequest()

        if not await self.store.check_password(user, password):
            return BadRequest()

        return await self._issue(user)

    # ─── External login ─────────────────────────────────

    async def external_login(
        self, provider: str, provider_key: str, username: Optional[str]
    ) -> Outcome:
        """Sign in through a linked external identity, provisioning on first use.

        The initial lookup is only a hint. Two first logins for the same
        identity can both miss it; the store's unique constraints decide the
        winner and the loser's create/link fails. A user the loser created but
        could not link is deleted again. On failure the lookup is
        repeated once so the loser signs in as the winner's user.
        """
        user = await self.store.find_by_login(provider, provider_key)
        if user is not None:
            return await self._issue(user)

        result, user = await self.store.create_user(username)
        if result.succeeded:
            result = await self.store.add_login(user, provider, provider_key)
            if not result.succeeded:
                # An unlinked account must not keep holding the username.
                await self.store.delete_user(user)
        if result.succeeded:
            return await self._issue(user)

        winner = await self.store.find_by_login(provider, provider_key)
        if winner is not None:
            return await self._issue(winner)
        return ValidationProblem.from_result(result)

    # ─── Refresh ────────────────────────────────────────

    async def refresh(self, refresh_token: Optional[str]) -> Outcome:
        if not refresh_token:
            return BadRequest()

        access_token, new_refresh_token = await self.tokens.refresh_tokens(refresh_token)
        if access_token is None or new_refresh_token is None:
            return BadRequest()

        return Ok(AuthTokens(access_token, new_refresh_token))

    # ─── Email confirmation ─────────────────────────────

    async def confirm_email(
        self, user_id: Optional[str], code: Optional[str]
    ) -> Outcome:
        if code is None or user_id is None:
            return BadRequest()

        user = await self.store.find_by_id(user_id)
        if user is None:
            return BadRequest()

        token = decode_confirmation_code(code)
        result = await self.store.confirm_email(user, token)
        if result.succeeded:
            return Ok()

        # The store's reason is dropped, matching the other generic failures.
        return BadRequest()
