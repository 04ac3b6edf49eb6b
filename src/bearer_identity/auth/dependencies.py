"""FastAPI dependencies that assemble the identity flows per request.

Learn: Store and token service share the request's database session, so a
single request sees a consistent view of users and tokens. Tests swap in
other collaborators by overriding get_credential_store / get_token_service
through app.dependency_overrides.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bearer_identity.db.engine import get_db
from bearer_identity.identity.flows import IdentityFlows
from bearer_identity.identity.protocols import CredentialStore, TokenService
from bearer_identity.identity.store import SqlCredentialStore
from bearer_identity.identity.tokens import SqlTokenService


def get_credential_store(db: AsyncSession = Depends(get_db)) -> CredentialStore:
    return SqlCredentialStore(db)


def get_token_service(db: AsyncSession = Depends(get_db)) -> TokenService:
    return SqlTokenService(db)


def get_identity_flows(
    store: CredentialStore = Depends(get_credential_store),
    tokens: TokenService = Depends(get_token_service),
) -> IdentityFlows:
    return IdentityFlows(store, tokens)
