"""IdentityFlows unit tests against in-memory collaborators.

Learn: The flows only depend on the CredentialStore and TokenService
protocols, so these fakes (plain dicts, a call log) are enough to pin down
the order of checks, the uniform failures, and the provisioning race
without a database.
"""

import binascii
import itertools
import uuid
from dataclasses import dataclass, field
from typing import Optional

import pytest

from bearer_identity.identity.flows import (
    IdentityFlows,
    decode_confirmation_code,
    encode_confirmation_code,
)
from bearer_identity.identity.protocols import SignInPolicy
from bearer_identity.identity.results import (
    AuthTokens,
    BadRequest,
    IdentityErrors,
    IdentityResult,
    Ok,
    ValidationProblem,
)


@dataclass
class FakeUser:
    username: str
    password: Optional[str] = None
    email_confirmed: bool = False
    phone_confirmed: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


class FakeStore:
    def __init__(self, policy: SignInPolicy = SignInPolicy()):
        self.sign_in_policy = policy
        self.users: dict[str, FakeUser] = {}
        self.logins: dict[tuple[str, str], FakeUser] = {}
        self.calls: list[str] = []
        self.stale_login_lookups = 0

    async def create_user(self, username, password=None):
        self.calls.append("create_user")
        if not username:
            return IdentityResult.failed(IdentityErrors.invalid_user_name(username)), None
        if username.upper() in self.users:
            return IdentityResult.failed(IdentityErrors.duplicate_user_name(username)), None
        user = FakeUser(username, password)
        self.users[username.upper()] = user
        return IdentityResult.success(), user

    async def find_by_username(self, username):
        self.calls.append("find_by_username")
        return self.users.get((username or "").upper())

    async def find_by_login(self, provider, provider_key):
        self.calls.append("find_by_login")
        if self.stale_login_lookups:
            self.stale_login_lookups -= 1
            return None
        return self.logins.get((provider, provider_key))

    async def find_by_id(self, user_id):
        self.calls.append("find_by_id")
        return next((u for u in self.users.values() if u.id == user_id), None)

    async def add_login(self, user, provider, provider_key, display_name=None):
        self.calls.append("add_login")
        if (provider, provider_key) in self.logins:
            return IdentityResult.failed(IdentityErrors.login_already_associated())
        self.logins[(provider, provider_key)] = user
        return IdentityResult.success()

    async def delete_user(self, user):
        self.calls.append("delete_user")
        del self.users[user.username.upper()]

    async def check_password(self, user, password):
        self.calls.append("check_password")
        return user.password is not None and user.password == password

    async def is_email_confirmed(self, user):
        self.calls.append("is_email_confirmed")
        return user.email_confirmed

    async def is_phone_number_confirmed(self, user):
        self.calls.append("is_phone_number_confirmed")
        return user.phone_confirmed

    async def generate_email_confirmation_token(self, user):
        return f"confirm:{user.id}"

    async def confirm_email(self, user, token):
        self.calls.append("confirm_email")
        if token != f"confirm:{user.id}":
            return IdentityResult.failed(IdentityErrors.invalid_token())
        user.email_confirmed = True
        return IdentityResult.success()


class FakeTokens:
    def __init__(self):
        self._counter = itertools.count(1)
        self.live_refresh: dict[str, FakeUser] = {}
        self.issued_for: list[FakeUser] = []

    async def get_access_token(self, user):
        self.issued_for.append(user)
        return f"access-{next(self._counter)}"

    async def get_refresh_token(self, user):
        token = f"refresh-{next(self._counter)}"
        self.live_refresh[token] = user
        return token

    async def refresh_tokens(self, refresh_token):
        user = self.live_refresh.pop(refresh_token, None)
        if user is None:
            return None, None
        return await self.get_access_token(user), await self.get_refresh_token(user)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def tokens():
    return FakeTokens()


@pytest.fixture
def flows(store, tokens):
    return IdentityFlows(store, tokens)


# ═══════════════════════════════════════════════════════════
# Register
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_success_is_bare_ok(flows, tokens):
    assert await flows.register("alice", "P@ss1") == Ok()
    assert tokens.issued_for == []


@pytest.mark.asyncio
async def test_register_failure_passes_store_errors_through(flows):
    await flows.register("alice", "P@ss1")
    outcome = await flows.register("alice", "P@ss1")
    assert outcome == ValidationProblem(
        {"DuplicateUserName": ["Username 'alice' is already taken."]}
    )


def test_validation_problem_groups_repeated_codes():
    result = IdentityResult.failed(
        IdentityErrors.invalid_token(),
        IdentityErrors.password_requires_digit(),
        IdentityErrors.invalid_token(),
    )
    assert ValidationProblem.from_result(result).errors == {
        "InvalidToken": ["Invalid token.", "Invalid token."],
        "PasswordRequiresDigit": ["Passwords must have at least one digit ('0'-'9')."],
    }


# ═══════════════════════════════════════════════════════════
# Password login
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_password_login_issues_token_pair(flows):
    await flows.register("alice", "P@ss1")
    outcome = await flows.password_login("alice", "P@ss1")
    assert isinstance(outcome, Ok)
    assert isinstance(outcome.value, AuthTokens)
    assert outcome.value.access_token.startswith("access-")
    assert outcome.value.refresh_token.startswith("refresh-")


@pytest.mark.asyncio
async def test_password_login_failures_are_identical(flows, store):
    await flows.register("alice", "P@ss1")
    unknown = await flows.password_login("bob", "P@ss1")
    wrong = await flows.password_login("alice", "nope")

    store.sign_in_policy = SignInPolicy(require_confirmed_email=True)
    unconfirmed = await flows.password_login("alice", "P@ss1")

    store.sign_in_policy = SignInPolicy(require_confirmed_phone=True)
    no_phone = await flows.password_login("alice", "P@ss1")

    assert unknown == wrong == unconfirmed == no_phone == BadRequest()


@pytest.mark.asyncio
async def test_password_login_checks_policy_before_password(flows, store):
    await flows.register("alice", "P@ss1")
    store.sign_in_policy = SignInPolicy(
        require_confirmed_email=True, require_confirmed_phone=True
    )
    store.calls.clear()

    await flows.password_login("alice", "P@ss1")
    assert store.calls == ["find_by_username", "is_email_confirmed"]

    store.users["ALICE"].email_confirmed = True
    store.calls.clear()
    await flows.password_login("alice", "P@ss1")
    assert store.calls == [
        "find_by_username",
        "is_email_confirmed",
        "is_phone_number_confirmed",
    ]

    store.users["ALICE"].phone_confirmed = True
    store.calls.clear()
    outcome = await flows.password_login("alice", "P@ss1")
    assert isinstance(outcome, Ok)
    assert store.calls[-1] == "check_password"


@pytest.mark.asyncio
async def test_password_login_skips_policy_checks_when_off(flows, store):
    await flows.register("alice", "P@ss1")
    store.calls.clear()
    await flows.password_login("alice", "P@ss1")
    assert store.calls == ["find_by_username", "check_password"]


# ═══════════════════════════════════════════════════════════
# External login
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_external_login_provisions_and_links(flows, store, tokens):
    outcome = await flows.external_login("github", "gh-1", "octocat")
    assert isinstance(outcome, Ok)
    assert store.calls == ["find_by_login", "create_user", "add_login"]
    assert store.logins[("github", "gh-1")].username == "octocat"
    assert store.logins[("github", "gh-1")].password is None


@pytest.mark.asyncio
async def test_external_login_existing_link_skips_provisioning(flows, store, tokens):
    await flows.external_login("github", "gh-1", "octocat")
    store.calls.clear()

    outcome = await flows.external_login("github", "gh-1", "someone-else")
    assert isinstance(outcome, Ok)
    assert store.calls == ["find_by_login"]
    assert len(store.users) == 1
    assert tokens.issued_for[0] is tokens.issued_for[1]


@pytest.mark.asyncio
async def test_external_login_create_failure_is_validation_problem(flows, store):
    outcome = await flows.external_login("github", "gh-1", None)
    assert isinstance(outcome, ValidationProblem)
    assert "InvalidUserName" in outcome.errors
    assert "add_login" not in store.calls


@pytest.mark.asyncio
async def test_external_login_race_loser_signs_in_as_winner(flows, store, tokens):
    """Both requests miss the initial lookup; the store's constraint decides."""
    await flows.external_login("github", "gh-1", "octocat")
    winner = store.logins[("github", "gh-1")]

    # The loser's initial lookup ran before the winner linked the login.
    store.stale_login_lookups = 1
    outcome = await flows.external_login("github", "gh-1", "octocat-2")

    assert isinstance(outcome, Ok)
    assert tokens.issued_for[-1] is winner
    assert len(store.logins) == 1
    assert list(store.users) == ["OCTOCAT"]
    assert store.calls[-2:] == ["delete_user", "find_by_login"]


@pytest.mark.asyncio
async def test_external_login_race_without_winner_fails_cleanly(flows, store):
    await flows.external_login("github", "gh-1", "octocat")

    # Both lookups miss: the conflict is surfaced, not hidden.
    store.stale_login_lookups = 2
    outcome = await flows.external_login("github", "gh-1", "octocat-2")
    assert outcome == ValidationProblem(
        {"LoginAlreadyAssociated": ["A user with this login already exists."]}
    )
    assert list(store.users) == ["OCTOCAT"]


# ═══════════════════════════════════════════════════════════
# Refresh
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_refresh_rotates_once(flows):
    await flows.register("alice", "P@ss1")
    first = (await flows.password_login("alice", "P@ss1")).value

    outcome = await flows.refresh(first.refresh_token)
    assert isinstance(outcome, Ok)
    assert outcome.value.refresh_token != first.refresh_token

    assert await flows.refresh(first.refresh_token) == BadRequest()


@pytest.mark.asyncio
@pytest.mark.parametrize("token", [None, ""])
async def test_refresh_without_token(flows, token):
    assert await flows.refresh(token) == BadRequest()


@pytest.mark.asyncio
async def test_refresh_half_pair_is_failure(store):
    class HalfTokens(FakeTokens):
        async def refresh_tokens(self, refresh_token):
            return "access", None

    flows = IdentityFlows(store, HalfTokens())
    assert await flows.refresh("anything") == BadRequest()


# ═══════════════════════════════════════════════════════════
# Email confirmation
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_confirm_email(flows, store):
    await flows.register("alice", "P@ss1")
    user = store.users["ALICE"]
    code = encode_confirmation_code(await store.generate_email_confirmation_token(user))

    assert await flows.confirm_email(user.id, code) == Ok()
    assert user.email_confirmed is True


@pytest.mark.asyncio
async def test_confirm_email_rejections_are_generic(flows, store):
    await flows.register("alice", "P@ss1")
    user = store.users["ALICE"]
    garbage = encode_confirmation_code("garbage")

    assert await flows.confirm_email(None, garbage) == BadRequest()
    assert await flows.confirm_email(user.id, None) == BadRequest()
    assert await flows.confirm_email("missing", garbage) == BadRequest()
    assert await flows.confirm_email(user.id, garbage) == BadRequest()
    assert user.email_confirmed is False


@pytest.mark.asyncio
@pytest.mark.parametrize("code", ["a", "ab!c", "@@@@", "a+/b", "YQ=="])
async def test_confirm_email_malformed_code_raises(flows, store, code):
    await flows.register("alice", "P@ss1")
    user = store.users["ALICE"]

    with pytest.raises(binascii.Error):
        await flows.confirm_email(user.id, code)
    assert "confirm_email" not in store.calls


@pytest.mark.asyncio
async def test_confirm_email_non_utf8_code_raises(flows, store):
    await flows.register("alice", "P@ss1")
    user = store.users["ALICE"]

    with pytest.raises(UnicodeDecodeError):
        await flows.confirm_email(user.id, "_-8")


def test_confirmation_code_is_url_safe_without_padding():
    code = encode_confirmation_code("token?with/slashes+and==")
    assert "=" not in code
    assert "+" not in code and "/" not in code
    assert decode_confirmation_code(code) == "token?with/slashes+and=="
