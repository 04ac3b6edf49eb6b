#!/usr/bin/env python3
"""
Bearer Identity Quickstart — register, sign in, rotate, and watch reuse fail.

Run with: python examples/quickstart.py

Requires: pip install httpx
Backend must be running: http://localhost:8000
"""

import sys
import uuid

import httpx

BASE = "http://localhost:8000"


def main():
    run_id = uuid.uuid4().hex[:6]
    username = f"demo-{run_id}"
    password = "P@ss1"
    client = httpx.Client(base_url=BASE, timeout=10)

    # ── Health check ──────────────────────────────────────────────
    print("Checking backend health...")
    try:
        resp = client.get("/health")
    except httpx.ConnectError:
        print(f"Backend not reachable at {BASE}")
        print("Start it with:  uvicorn bearer_identity.main:app --reload --port 8000")
        sys.exit(1)
    health = resp.json()
    print(f"  Database: {'✓' if health['database'] == 'ok' else '✗'}")
    print(f"  Redis:    {'✓' if health['redis'] == 'ok' else '✗'} (rate limiting)")

    # ── Register ──────────────────────────────────────────────────
    print(f"\n1. Registering {username}...")
    resp = client.post("/identity/register", json={"username": username, "password": password})
    assert resp.status_code == 200, f"Failed: {resp.text}"
    print("   Registered (no tokens issued yet)")

    resp = client.post("/identity/register", json={"username": username, "password": password})
    print(f"   Registering again → {resp.status_code}: {list(resp.json()['errors'])}")

    # ── Login ─────────────────────────────────────────────────────
    print("\n2. Logging in with a wrong password...")
    resp = client.post("/identity/login", json={"username": username, "password": "wrong"})
    print(f"   → {resp.status_code}, body {resp.content!r}")

    print("\n3. Logging in...")
    resp = client.post("/identity/login", json={"username": username, "password": password})
    assert resp.status_code == 200, f"Failed: {resp.text}"
    tokens = resp.json()
    print(f"   Access token:  {tokens['accessToken'][:24]}...")
    print(f"   Refresh token: {tokens['refreshToken'][:12]}...")

    # ── Refresh ───────────────────────────────────────────────────
    print("\n4. Refreshing...")
    resp = client.post("/identity/refresh", json={"token": tokens["refreshToken"]})
    assert resp.status_code == 200, f"Failed: {resp.text}"
    rotated = resp.json()
    print(f"   New refresh token: {rotated['refreshToken'][:12]}...")

    print("\n5. Replaying the old refresh token...")
    resp = client.post("/identity/refresh", json={"token": tokens["refreshToken"]})
    print(f"   → {resp.status_code} (token family revoked)")

    resp = client.post("/identity/refresh", json={"token": rotated["refreshToken"]})
    print(f"   Newest token after replay → {resp.status_code}")

    # ── External login ────────────────────────────────────────────
    print("\n6. First login through an external provider...")
    body = {"providerKey": f"gh-{run_id}", "username": f"gh-{run_id}"}
    resp = client.post("/identity/login/github", json=body)
    assert resp.status_code == 200, f"Failed: {resp.text}"
    print("   Provisioned and signed in")
    resp = client.post("/identity/login/github", json=body)
    print(f"   Second login reuses the account → {resp.status_code}")

    print("\nDone.")


if __name__ == "__main__":
    main()
