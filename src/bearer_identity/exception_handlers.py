"""Exception handlers for request binding failures.

Learn: FastAPI answers unparseable or incomplete bodies with a 422 of its
own design. The identity API only speaks two failure shapes, and which one
a route uses is part of its contract:
- register and external login report problems, so binding errors become
  the 400 validation problem, keyed by field path
- every other route fails with the bare 400, so a malformed login,
  refresh or confirmation body looks like any other refusal

The offending input is never echoed back (it may be a password).
"""

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import Response

from bearer_identity.api.identity import (
    IDENTITY_PREFIX,
    validation_problem_response,
)


def _reports_problems(path: str) -> bool:
    # /identity/login itself is the password login, which does not
    return path == f"{IDENTITY_PREFIX}/register" or path.startswith(
        f"{IDENTITY_PREFIX}/login/"
    )


def _field_key(loc) -> str:
    # ("body", "providerKey") → "providerKey"; the body itself → "$"
    parts = [str(p) for p in loc if p != "body"]
    return ".".join(parts) or "$"


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> Response:
    if not _reports_problems(request.url.path):
        return Response(status_code=400)

    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        errors.setdefault(_field_key(error.get("loc", ())), []).append(error["msg"])
    return validation_problem_response(errors)
