from datetime import datetime

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from codeauth.core.constants import FieldSizes
from codeauth.models.base import Base, UTCDateTime


class User(Base):
    __tablename__ = "users"

    # Opaque token from TokenCipher; never interpreted here
    token: Mapped[str] = mapped_column(String(FieldSizes.LONG), primary_key=True)
    last_activity_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
