from datetime import datetime

from pydantic import Field

from codeauth.schemas.base import BaseSchema, RecordSchema


class UserCreate(BaseSchema):
    """Internal schema for creating a user in the database."""

    token: str = Field(min_length=1)
    last_activity_at: datetime


class UserRecord(RecordSchema):
    token: str
    last_activity_at: datetime
