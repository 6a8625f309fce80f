from __future__ import annotations

import httpx
import pytest

from aql.auth import AuthService, SessionStore, validate_password
from aql.errors import PasswordPolicyError


def test_password_rules():
    assert validate_password("") == ["Password is required"]
    assert validate_password("Str0ng!pass") == []
    errors = validate_password("weak pass")
    assert "Password must contain at least one uppercase letter" in errors
    assert "Password must contain at least one number" in errors
    assert "Password must contain at least one special character" in errors
    assert "Password cannot contain spaces" in errors
    assert validate_password("Aa1!" * 6) == ["Password must be less than 20 characters"]


def test_session_store_round_trip(tmp_path):
    store = SessionStore(tmp_path)
    path = store.save_state("proj.example.co:443", {"access_token": "t1", "user": {"id": "u1"}})
    assert path.name == "proj.example.co_443.json"
    assert store.load_state("proj.example.co:443")["access_token"] == "t1"

    store.clear("proj.example.co:443")
    assert store.load_state("proj.example.co:443") is None


def test_corrupt_session_file_is_ignored(tmp_path):
    store = SessionStore(tmp_path)
    store.state_path_for("h").write_text("{not json", encoding="utf-8")
    assert store.load_state("h") is None


@pytest.mark.asyncio
async def test_sign_in_remembers_session(make_backend, tmp_path):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"access_token": "jwt-1", "user": {"id": "u1"}})

    client = make_backend(handler)
    auth = AuthService(client, SessionStore(tmp_path))
    await auth.sign_in("a@b.c", "Str0ng!pass")

    assert seen[0].url.params["grant_type"] == "password"
    assert auth.host == "backend.test"

    fresh = AuthService(make_backend(handler), SessionStore(tmp_path))
    assert fresh.restore_session()["access_token"] == "jwt-1"


@pytest.mark.asyncio
async def test_weak_password_never_reaches_backend(make_backend, tmp_path):
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("unexpected request")

    auth = AuthService(make_backend(handler), SessionStore(tmp_path))
    with pytest.raises(PasswordPolicyError) as info:
        await auth.update_password("short")
    assert "Password must be at least 8 characters" in info.value.errors


@pytest.mark.asyncio
async def test_access_context_from_profile(make_backend, tmp_path):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/auth/v1/user":
            assert request.headers["authorization"] == "Bearer user-jwt"
            return httpx.Response(200, json={"id": "u1", "email": "a@b.c", "user_metadata": {"role": "customer"}})
        return httpx.Response(200, json={"id": "u1", "email": "a@b.c", "role": "supervisor", "location_id": "loc001"})

    auth = AuthService(make_backend(handler), SessionStore(tmp_path))
    ctx = await auth.resolve_access_context("user-jwt")
    assert (ctx.user_id, ctx.role, ctx.location_id) == ("u1", "supervisor", "loc001")


@pytest.mark.asyncio
async def test_access_context_falls_back_to_metadata(make_backend, tmp_path):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/auth/v1/user":
            return httpx.Response(200, json={"id": "u2", "user_metadata": {"role": "inspector", "location_id": "loc002"}})
        return httpx.Response(406, json={"code": "PGRST116", "message": "no rows"})

    auth = AuthService(make_backend(handler), SessionStore(tmp_path))
    ctx = await auth.resolve_access_context("user-jwt")
    assert ctx.role == "inspector"
    assert ctx.location_id == "loc002"
