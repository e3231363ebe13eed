"""User model.

Application accounts. Every other surebet table hangs off a user, so this is
the root of the foreign-key graph.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.models.defaults import random_uuid


class User(Base):
    """User model.

    Attributes:
        id: Random UUID string primary key
        email: Unique login email
        password: Password hash
        name: Display name
        role: 'user' or 'admin'
        created_at: Timestamp when record was created
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String,
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=random_uuid(),
    )

    email: Mapped[str] = mapped_column(Text, nullable=False, unique=True)

    password: Mapped[str] = mapped_column(Text, nullable=False)

    name: Mapped[str] = mapped_column(Text, nullable=False)

    role: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="user",
        server_default="user",
    )

    created_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id!r}, email={self.email!r}, role={self.role!r})>"
