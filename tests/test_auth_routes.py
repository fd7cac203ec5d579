"""
Tests for the GitHub login flow and the session endpoints under /auth.
"""

import pytest
from sqlalchemy import func, select

from database.models import User
from tests.helpers import login, query_param


@pytest.mark.asyncio
async def test_login_redirects_to_github(client, connectors):
    resp = await client.get("/auth/github")

    assert resp.status_code == 307
    location = resp.headers["location"]
    assert location.startswith("https://auth.example/github/authorize")
    assert query_param(location, "redirect_uri") == "http://test/auth/github/callback"
    assert query_param(location, "scope") == "user:email"
    assert query_param(location, "state")


@pytest.mark.asyncio
async def test_login_creates_account(client, session_factory):
    await login(client)

    resp = await client.get("/auth/user")
    assert resp.status_code == 200
    user = resp.json()["user"]
    assert user["githubId"] == "gh-1"
    assert user["username"] == "octocat"
    assert user["displayName"] == "The Octocat"
    assert user["profileUrl"] == "https://github.com/octocat"

    async with session_factory() as session:
        row = (await session.execute(select(User))).scalar_one()
        assert str(row.user_id) == user["id"]
        assert row.access_token == "login-token-gh-1"


@pytest.mark.asyncio
async def test_second_login_reuses_account(client, session_factory):
    await login(client)
    first = (await client.get("/auth/user")).json()["user"]["id"]
    await client.get("/auth/logout")

    await login(client)
    second = (await client.get("/auth/user")).json()["user"]["id"]

    assert first == second
    async with session_factory() as session:
        count = (await session.execute(select(func.count()).select_from(User))).scalar_one()
    assert count == 1


@pytest.mark.asyncio
async def test_login_state_mismatch(client):
    await client.get("/auth/github")

    resp = await client.get("/auth/github/callback", params={"code": "c", "state": "forged"})

    assert resp.status_code == 302
    assert resp.headers["location"] == "http://localhost:5173/login?error=state_mismatch"
    assert (await client.get("/auth/user")).status_code == 401


@pytest.mark.asyncio
async def test_login_denied(client):
    await client.get("/auth/github")

    resp = await client.get("/auth/github/callback", params={"error": "access_denied"})

    assert resp.headers["location"] == "http://localhost:5173/login?error=oauth_error"


@pytest.mark.asyncio
async def test_login_exchange_failure(client, connectors):
    connectors["github"].fail_with = RuntimeError("bad_verification_code")
    resp = await client.get("/auth/github")
    state = query_param(resp.headers["location"], "state")

    resp = await client.get("/auth/github/callback", params={"code": "c", "state": state})

    assert resp.headers["location"] == "http://localhost:5173/login?error=oauth_error"


@pytest.mark.asyncio
async def test_user_requires_login(client):
    resp = await client.get("/auth/user")

    assert resp.status_code == 401
    assert resp.json()["detail"] == "User not authenticated"


@pytest.mark.asyncio
async def test_logout(logged_in):
    resp = await logged_in.get("/auth/logout")

    assert resp.status_code == 302
    assert resp.headers["location"] == "http://localhost:5173/login"
    assert (await logged_in.get("/auth/user")).status_code == 401


@pytest.mark.asyncio
async def test_session_for_deleted_account_is_cleared(logged_in, session_factory):
    async with session_factory() as session:
        user = (await session.execute(select(User))).scalar_one()
        await session.delete(user)
        await session.commit()

    resp = await logged_in.get("/auth/user")

    assert resp.status_code == 401
