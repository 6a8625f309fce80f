from __future__ import annotations

import pytest
from pydantic import ValidationError

from aql.auth import AccessContext
from aql.guard import SessionState, guard


def test_pending_session_shows_loading():
    assert guard(SessionState(loading=True)).kind == "loading"


def test_no_session_redirects_to_login_with_origin():
    decision = guard(SessionState(access=None, path="/jobs/42"))
    assert decision.kind == "redirect"
    assert decision.location == "/login"
    assert decision.from_path == "/jobs/42"


def test_role_outside_allow_list_is_denied():
    state = SessionState(access=AccessContext(user_id="u1", role="inspector"))
    decision = guard(state, allowed_roles=["admin", "manager"])
    assert decision.kind == "denied"
    assert decision.title == "Access Denied"


def test_missing_role_is_denied_when_roles_required():
    state = SessionState(access=AccessContext(user_id="u1", role=None))
    assert guard(state, allowed_roles=["admin"]).kind == "denied"


def test_allowed_role_and_open_views_render():
    state = SessionState(access=AccessContext(user_id="u1", role="manager"))
    assert guard(state, allowed_roles=["admin", "manager"]).kind == "allow"
    assert guard(state).kind == "allow"
    assert guard(state, allowed_roles=[]).kind == "allow"


def test_access_context_cannot_be_changed_after_resolution():
    access = AccessContext(user_id="u1", role="inspector")
    with pytest.raises(ValidationError):
        access.role = "admin"
    assert guard(SessionState(access=access), allowed_roles=["admin"]).kind == "denied"
