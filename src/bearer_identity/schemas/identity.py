"""Pydantic schemas for the /identity endpoints.

Learn: JSON on the wire is camelCase (providerKey, accessToken, userId);
Python attributes stay snake_case via an alias generator.

Optional fields on RefreshTokenRequest and EmailConfirmation are optional
on purpose: a missing token is answered by the flow with the generic 400,
not by request validation.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

VALIDATION_PROBLEM_TYPE = "https://tools.ietf.org/html/rfc9110#section-15.5.1"
VALIDATION_PROBLEM_TITLE = "One or more validation errors occurred."


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PasswordLoginInfo(_CamelModel):
    username: str
    password: str


class ExternalUserInfo(_CamelModel):
    provider_key: str
    username: Optional[str] = None


class RefreshTokenRequest(_CamelModel):
    token: Optional[str] = None


class EmailConfirmation(_CamelModel):
    user_id: Optional[str] = None
    token: Optional[str] = None


class AuthTokensRead(_CamelModel):
    access_token: str
    refresh_token: str


class ValidationProblemRead(BaseModel):
    """RFC 9457 problem details with per-code error messages."""

    type: str = VALIDATION_PROBLEM_TYPE
    title: str = VALIDATION_PROBLEM_TITLE
    status: int = 400
    errors: dict[str, list[str]]
