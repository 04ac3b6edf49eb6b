"""bearer-identity CLI — drive a running identity service from the shell.

Usage:
    bearer-identity register alice 'P@ss1'          # Create an account
    bearer-identity login alice 'P@ss1'             # Print access + refresh token
    bearer-identity login-external github 12345 alice
    bearer-identity refresh <refresh-token>         # Rotate tokens
    bearer-identity confirm-email <user-id> <code>  # Confirm an email address
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("BEARER_IDENTITY_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the identity service."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous click handler.

    Inside an existing event loop (e.g. CliRunner in async tests) the
    coroutine is offloaded to a worker thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _report(r: httpx.Response, success_message: str) -> None:
    """Print the outcome of an identity call; exit 1 on refusal."""
    if r.status_code == 200:
        if r.content:
            click.echo(_pretty_json(r.json()))
        else:
            click.secho(success_message, fg="green")
        return

    if r.headers.get("content-type", "").startswith("application/problem+json"):
        for code, messages in r.json().get("errors", {}).items():
            for message in messages:
                click.secho(f"{code}: {message}", fg="red", err=True)
    else:
        click.secho(f"Request refused ({r.status_code})", fg="red", err=True)
    sys.exit(1)


async def _post(path: str, body: dict) -> httpx.Response:
    async with _client() as c:
        return await c.post(path, json=body)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="bearer-identity")
def main():
    """bearer-identity — register accounts and obtain bearer tokens."""


@main.command()
@click.argument("username")
@click.argument("password")
def register(username: str, password: str):
    """Create an account for USERNAME."""
    r = _run(_post("/identity/register", {"username": username, "password": password}))
    _report(r, f"Registered {username}")


@main.command()
@click.argument("username")
@click.argument("password")
def login(username: str, password: str):
    """Sign in with a password and print the token pair."""
    r = _run(_post("/identity/login", {"username": username, "password": password}))
    _report(r, "Signed in")


@main.command("login-external")
@click.argument("provider")
@click.argument("provider_key")
@click.argument("username", required=False)
def login_external(provider: str, provider_key: str, username: Optional[str]):
    """Sign in with an external PROVIDER identity, creating the user if new."""
    r = _run(
        _post(
            f"/identity/login/{provider}",
            {"providerKey": provider_key, "username": username},
        )
    )
    _report(r, "Signed in")


@main.command()
@click.argument("token")
def refresh(token: str):
    """Exchange a refresh TOKEN for a new token pair."""
    r = _run(_post("/identity/refresh", {"token": token}))
    _report(r, "Refreshed")


@main.command("confirm-email")
@click.argument("user_id")
@click.argument("code")
def confirm_email(user_id: str, code: str):
    """Confirm the email address of USER_ID with the CODE from the link."""
    r = _run(_post("/identity/confirmEmail", {"userId": user_id, "token": code}))
    _report(r, "Email confirmed")


if __name__ == "__main__":
    main()
