"""Identity API — registration, login, federated login, refresh, confirmation.

Learn: Routes are thin. Each one hands its body to IdentityFlows and
renders the outcome; there are exactly three renderings:
- Ok → 200, empty or with {accessToken, refreshToken}
- BadRequest → 400 with no body at all
- ValidationProblem → 400 application/problem+json with errors by code

POST /identity/register            → create account (no sign-in)
POST /identity/login               → username/password → tokens
POST /identity/login/{provider}    → external identity → tokens (provisions)
POST /identity/refresh             → refresh token → rotated tokens
POST /identity/confirmEmail        → confirm email with link code
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, Response

from bearer_identity.auth.dependencies import get_identity_flows
from bearer_identity.identity.flows import IdentityFlows
from bearer_identity.identity.results import BadRequest, Ok, Outcome, ValidationProblem
from bearer_identity.schemas.identity import (
    AuthTokensRead,
    EmailConfirmation,
    ExternalUserInfo,
    PasswordLoginInfo,
    RefreshTokenRequest,
    ValidationProblemRead,
)

IDENTITY_PREFIX = "/identity"

router = APIRouter(prefix=IDENTITY_PREFIX)

PROBLEM_JSON = "application/problem+json"

_tokens_doc = {200: {"model": AuthTokensRead}}
_empty_400_doc = {400: {"description": "Request refused"}}
_problem_400_doc = {
    400: {"model": ValidationProblemRead, "content": {PROBLEM_JSON: {}}}
}


def validation_problem_response(errors: dict[str, list[str]]) -> JSONResponse:
    body = ValidationProblemRead(errors=errors)
    return JSONResponse(
        status_code=400, content=body.model_dump(), media_type=PROBLEM_JSON
    )


def render(outcome: Outcome) -> Response:
    if isinstance(outcome, Ok):
        if outcome.value is None:
            return Response(status_code=200)
        tokens = AuthTokensRead(
            access_token=outcome.value.access_token,
            refresh_token=outcome.value.refresh_token,
        )
        return JSONResponse(status_code=200, content=tokens.model_dump(by_alias=True))
    if isinstance(outcome, ValidationProblem):
        return validation_problem_response(outcome.errors)
    if isinstance(outcome, BadRequest):
        return Response(status_code=400)
    raise TypeError(f"Unknown identity outcome: {outcome!r}")


# ─── Register ────────────────────────────────────────────


@router.post("/register", responses=_problem_400_doc)
async def register(
    body: PasswordLoginInfo, flows: IdentityFlows = Depends(get_identity_flows)
):
    """Create a new account. Does not issue tokens."""
    return render(await flows.register(body.username, body.password))


# ─── Login ───────────────────────────────────────────────


@router.post("/login", responses={**_tokens_doc, **_empty_400_doc})
async def login(
    body: PasswordLoginInfo, flows: IdentityFlows = Depends(get_identity_flows)
):
    """Username and password → access and refresh tokens."""
    return render(await flows.password_login(body.username, body.password))


@router.post("/login/{provider}", responses={**_tokens_doc, **_problem_400_doc})
async def external_login(
    provider: str,
    body: ExternalUserInfo,
    flows: IdentityFlows = Depends(get_identity_flows),
):
    """Sign in with an external provider identity, creating the user on first use."""
    return render(
        await flows.external_login(provider, body.provider_key, body.username)
    )


# ─── Refresh ────────────────────────────────────────────


@router.post("/refresh", responses={**_tokens_doc, **_empty_400_doc})
async def refresh(
    body: RefreshTokenRequest, flows: IdentityFlows = Depends(get_identity_flows)
):
    """Exchange a refresh token for a new pair. The presented token is consumed."""
    return render(await flows.refresh(body.token))


# ─── Email confirmation ─────────────────────────────────


@router.post("/confirmEmail", responses=_empty_400_doc)
async def confirm_email(
    body: EmailConfirmation, flows: IdentityFlows = Depends(get_identity_flows)
):
    return render(await flows.confirm_email(body.user_id, body.token))
