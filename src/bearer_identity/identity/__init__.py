"""Identity flows and their collaborators.

Learn: flows.IdentityFlows is the orchestrator. It only knows the
CredentialStore and TokenService protocols; store.SqlCredentialStore and
tokens.SqlTokenService are the database-backed implementations wired in by
auth.dependencies.
"""

from bearer_identity.identity.flows import IdentityFlows
from bearer_identity.identity.protocols import CredentialStore, SignInPolicy, TokenService
from bearer_identity.identity.results import (
    AuthTokens,
    BadRequest,
    IdentityError,
    IdentityResult,
    Ok,
    ValidationProblem,
)

__all__ = [
    "AuthTokens",
    "BadRequest",
    "CredentialStore",
    "IdentityError",
    "IdentityFlows",
    "IdentityResult",
    "Ok",
    "SignInPolicy",
    "TokenService",
    "ValidationProblem",
]
