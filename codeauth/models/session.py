from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from codeauth.core.constants import DEFAULT_SESSION_DURATION, FieldSizes
from codeauth.models.base import Base, UTCDateTime


class Session(Base):
    __tablename__ = "sessions"

    session_id: Mapped[str] = mapped_column(String(FieldSizes.SESSION_ID), primary_key=True)
    user_token: Mapped[str] = mapped_column(
        ForeignKey("users.token", ondelete="CASCADE"), nullable=False, index=True
    )
    api_key: Mapped[str] = mapped_column(String(FieldSizes.MEDIUM), nullable=False, default="")

    # Only set before validation; delegated sessions never carry a code
    code: Mapped[str | None] = mapped_column(String(FieldSizes.CODE), nullable=True)
    code_valid_until: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, index=True)
    session_duration: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_SESSION_DURATION
    )
    validated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    parent_session_id: Mapped[str | None] = mapped_column(
        ForeignKey("sessions.session_id", ondelete="CASCADE"), nullable=True, index=True
    )
