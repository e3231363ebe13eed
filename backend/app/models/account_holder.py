"""AccountHolder model.

A person in whose name betting-house accounts are registered.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.models.defaults import random_uuid


class AccountHolder(Base):
    """AccountHolder model.

    Attributes:
        id: Random UUID string primary key
        user_id: Owning user
        name: Holder name
        email: Contact email
        username: Login used at the betting houses
        created_at: Timestamp when record was created
    """

    __tablename__ = "account_holders"
    __table_args__ = (Index("idx_account_holders_user", "user_id"),)

    id: Mapped[str] = mapped_column(
        String,
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=random_uuid(),
    )

    user_id: Mapped[str | None] = mapped_column(String, ForeignKey("users.id"))

    name: Mapped[str] = mapped_column(Text, nullable=False)

    email: Mapped[str | None] = mapped_column(Text)

    username: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<AccountHolder(id={self.id!r}, name={self.name!r})>"
