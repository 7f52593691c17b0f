from datetime import datetime
from typing import Any

from pydantic import Field

from codeauth.core.constants import DEFAULT_SESSION_DURATION, SessionState
from codeauth.schemas.base import BaseSchema, RecordSchema

# Present only for some sessions; omitted from the wire form when unset
OPTIONAL_WIRE_FIELDS = frozenset({"code", "code_valid_until", "parent_session_id"})


class SessionCreate(BaseSchema):
    """Internal schema for inserting a session row."""

    session_id: str
    user_token: str
    api_key: str = ""
    code: str | None = None
    code_valid_until: datetime | None = None
    expires_at: datetime
    session_duration: int = Field(default=DEFAULT_SESSION_DURATION, gt=0)
    validated: bool = False
    created_at: datetime
    parent_session_id: str | None = None


class SessionCodeUpdate(BaseSchema):
    code: str
    code_valid_until: datetime


class SessionRecord(RecordSchema):
    session_id: str
    user_token: str
    api_key: str
    code: str | None = None
    code_valid_until: datetime | None = None
    expires_at: datetime
    session_duration: int
    validated: bool
    created_at: datetime
    parent_session_id: str | None = None

    @property
    def is_delegated(self) -> bool:
        return self.parent_session_id is not None

    @property
    def state(self) -> SessionState:
        if self.is_delegated:
            return SessionState.DELEGATED
        if self.validated:
            return SessionState.VALIDATED
        return SessionState.UNVALIDATED

    def to_wire(self) -> dict[str, Any]:
        """Serialise for the controller layer, dropping unset delegation-only fields."""
        data = self.model_dump(mode="json")
        for field in OPTIONAL_WIRE_FIELDS:
            if data.get(field) is None:
                data.pop(field, None)
        return data
