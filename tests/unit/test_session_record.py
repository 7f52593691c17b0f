"""
Unit tests for boundary records
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from codeauth.core.constants import SessionState
from codeauth.schemas.session import SessionRecord

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _record(**overrides) -> SessionRecord:
    data = dict(
        session_id="a" * 32,
        user_token="tok",
        api_key="keyA",
        code="012345",
        code_valid_until=NOW + timedelta(minutes=5),
        expires_at=NOW + timedelta(minutes=30),
        session_duration=1800,
        validated=False,
        created_at=NOW,
    )
    data.update(overrides)
    return SessionRecord(**data)


def test_states():
    assert _record().state == SessionState.UNVALIDATED
    assert _record(validated=True).state == SessionState.VALIDATED
    delegated = _record(validated=True, code=None, code_valid_until=None, parent_session_id="b" * 32)
    assert delegated.state == SessionState.DELEGATED
    assert delegated.is_delegated


def test_wire_form_keeps_code_for_login_sessions():
    wire = _record().to_wire()
    assert wire["code"] == "012345"
    assert "parent_session_id" not in wire
    assert wire["validated"] is False


def test_wire_form_omits_code_for_delegated_sessions():
    wire = _record(
        validated=True, code=None, code_valid_until=None, parent_session_id="b" * 32
    ).to_wire()
    assert "code" not in wire
    assert "code_valid_until" not in wire
    assert wire["parent_session_id"] == "b" * 32


def test_records_are_immutable():
    record = _record()
    with pytest.raises(ValidationError):
        record.validated = True
