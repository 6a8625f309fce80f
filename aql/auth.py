from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict

from . import codec
from .backend import BackendClient
from .errors import DataShapeError, NotFoundError, PasswordPolicyError
from .schemas import Profile
from .settings import settings

logger = logging.getLogger(__name__)

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 20
_SPECIAL_RE = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")

_PROFILE_COLUMNS = "id,email,name,first_name,last_name,role,location_id,isAvailable,created_at,updated_at"


def validate_password(password: Optional[str]) -> List[str]:
    """Messages for every rule the password breaks; empty when it is acceptable."""
    if not password:
        return ["Password is required"]
    errors = []
    if len(password) < PASSWORD_MIN_LENGTH:
        errors.append(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    if len(password) > PASSWORD_MAX_LENGTH:
        errors.append(f"Password must be less than {PASSWORD_MAX_LENGTH} characters")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", password):
        errors.append("Password must contain at least one number")
    if not _SPECIAL_RE.search(password):
        errors.append("Password must contain at least one special character")
    if re.search(r"\s", password):
        errors.append("Password cannot contain spaces")
    return errors


def _check_password(password: str) -> None:
    errors = validate_password(password)
    if errors:
        raise PasswordPolicyError(errors)


class AccessContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    """Who is signed in and with which role, resolved once per session."""

    user_id: str
    email: Optional[str] = None
    role: Optional[str] = None
    location_id: Optional[str] = None


class SessionStore:
    """Backend sessions persisted as JSON, one file per project host."""

    def __init__(self, directory: Optional[Path] = None) -> None:
        self._dir = directory or settings.sessions_dir()

    def state_path_for(self, host: str) -> Path:
        safe = host.replace(":", "_")
        return self._dir / f"{safe}.json"

    def load_state(self, host: str) -> Optional[Dict[str, Any]]:
        p = self.state_path_for(host)
        if not p.exists():
            return None
        try:
            state = codec.loads(p.read_bytes())
        except DataShapeError as e:
            logger.warning("Ignoring unreadable session file %s: %s", p, e)
            return None
        return state if isinstance(state, dict) else None

    def save_state(self, host: str, session: Dict[str, Any]) -> Path:
        p = self.state_path_for(host)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(codec.dumps(session), encoding="utf-8")
        return p

    def clear(self, host: str) -> None:
        p = self.state_path_for(host)
        if p.exists():
            p.unlink()


class AuthService:
    def __init__(self, client: BackendClient, sessions: Optional[SessionStore] = None) -> None:
        self.client = client
        self.sessions = sessions or SessionStore()
        self.host = urlparse(client.cfg.url).netloc or client.cfg.url

    def _remember(self, session: Optional[Dict[str, Any]]) -> None:
        if not session or not session.get("access_token"):
            return
        self.sessions.save_state(self.host, session)
        self.client.set_access_token(session["access_token"])

    def restore_session(self) -> Optional[Dict[str, Any]]:
        session = self.sessions.load_state(self.host)
        if session and session.get("access_token"):
            self.client.set_access_token(session["access_token"])
            return session
        return None

    async def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        session = await self.client.auth(
            "POST",
            "token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        self._remember(session)
        logger.info("Signed in %s", email)
        return session

    async def sign_up(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: str,
        location_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        _check_password(password)
        full_name = f"{first_name} {last_name}"
        data = await self.client.auth(
            "POST",
            "signup",
            json={
                "email": email,
                "password": password,
                "data": {
                    "first_name": first_name,
                    "last_name": last_name,
                    "full_name": full_name,
                    "role": role,
                    "location_id": location_id,
                },
            },
        )
        data = data or {}
        user = data.get("user") or (data if data.get("id") else None)
        if user:
            await (
                self.client.table("profiles")
                .update(
                    {
                        "name": full_name,
                        "first_name": first_name,
                        "last_name": last_name,
                        "role": role,
                        "location_id": location_id,
                    }
                )
                .eq("id", user["id"])
                .execute()
            )
        self._remember(data if data.get("access_token") else data.get("session"))
        return data

    async def sign_out(self) -> None:
        session = self.sessions.load_state(self.host) or {}
        token = session.get("access_token")
        if token:
            await self.client.auth("POST", "logout", token=token)
        self.sessions.clear(self.host)
        self.client.set_access_token(None)

    async def reset_password(self, email: str, redirect_to: Optional[str] = None) -> None:
        params = {"redirect_to": redirect_to} if redirect_to else None
        await self.client.auth("POST", "recover", json={"email": email}, params=params)

    async def update_password(self, password: str) -> None:
        _check_password(password)
        await self.client.auth("PUT", "user", json={"password": password})

    async def get_user_profile(self, user_id: str) -> Profile:
        result = await self.client.table("profiles").select(_PROFILE_COLUMNS).eq("id", user_id).single().execute()
        return Profile.model_validate(result.data)

    async def update_user_profile(self, user_id: str, **fields: Any) -> Profile:
        values = dict(fields)
        if values.get("first_name") and values.get("last_name"):
            values["name"] = f"{values['first_name']} {values['last_name']}"
        result = await (
            self.client.table("profiles")
            .update(values)
            .eq("id", user_id)
            .select(_PROFILE_COLUMNS)
            .single()
            .execute()
        )
        return Profile.model_validate(result.data)

    async def resolve_access_context(self, access_token: Optional[str] = None) -> AccessContext:
        """Fetch the signed-in user and their profile role.

        A user without a profile row falls back to the role in their sign-up
        metadata.
        """
        user = await self.client.auth("GET", "user", token=access_token)
        user_id = str(user["id"])
        metadata = user.get("user_metadata") or {}
        try:
            profile = await self.get_user_profile(user_id)
        except NotFoundError:
            logger.warning("No profile row for user %s", user_id)
            return AccessContext(
                user_id=user_id,
                email=user.get("email"),
                role=metadata.get("role"),
                location_id=metadata.get("location_id"),
            )
        return AccessContext(
            user_id=user_id,
            email=profile.email or user.get("email"),
            role=profile.role or metadata.get("role"),
            location_id=profile.location_id,
        )
