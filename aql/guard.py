"""Presentation-level role gate.

This decides what a view shows; it is not a security boundary. The backend's
row-level policies are the authoritative check.
"""
from __future__ import annotations

import logging
from typing import Literal, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from .auth import AccessContext

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"
DENIED_TITLE = "Access Denied"
DENIED_MESSAGE = "You don't have permission to access this page."


class SessionState(BaseModel):
    model_config = ConfigDict(frozen=True)

    loading: bool = False
    access: Optional[AccessContext] = None
    path: str = "/"


class GuardDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["loading", "redirect", "denied", "allow"]
    location: Optional[str] = None
    from_path: Optional[str] = None
    title: Optional[str] = None
    message: Optional[str] = None


def guard(state: SessionState, allowed_roles: Optional[Sequence[str]] = None) -> GuardDecision:
    if state.loading:
        return GuardDecision(kind="loading", message="Authenticating...")

    if state.access is None:
        return GuardDecision(kind="redirect", location=LOGIN_PATH, from_path=state.path)

    if allowed_roles:
        role = state.access.role
        if not role or role not in allowed_roles:
            logger.info("Denied %s (role %s) at %s", state.access.user_id, role, state.path)
            return GuardDecision(kind="denied", title=DENIED_TITLE, message=DENIED_MESSAGE)

    return GuardDecision(kind="allow")
