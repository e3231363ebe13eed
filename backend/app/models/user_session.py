"""UserSession model.

Server-side HTTP sessions written by the web application's session store.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, String
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class UserSession(Base):
    """UserSession model.

    Attributes:
        sid: Session id primary key
        sess: Serialized session payload
        expire: Expiry timestamp, TIMESTAMP(6) on Postgres
    """

    __tablename__ = "session"
    __table_args__ = (Index("idx_session_expire", "expire"),)

    sid: Mapped[str] = mapped_column(String, primary_key=True)

    sess: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    expire: Mapped[datetime] = mapped_column(
        DateTime().with_variant(TIMESTAMP(precision=6), "postgresql"),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<UserSession(sid={self.sid!r}, expire={self.expire!r})>"
