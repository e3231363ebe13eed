"""SurebetSet model.

A group of opposing bets on one event that together lock in a profit.
"""

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    false,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.models.defaults import random_uuid


class SurebetSet(Base):
    """SurebetSet model.

    Attributes:
        id: Random UUID string primary key
        user_id: Owning user
        event_date: When the event starts
        sport, league, team_a, team_b: Event description
        profit_percentage: Expected profit, NUMERIC(5,2)
        status: 'pending', 'resolved', ...
        is_checked: Whether an operator reviewed the set
        created_at: Timestamp when record was created
    """

    __tablename__ = "surebet_sets"
    __table_args__ = (Index("idx_surebet_sets_user", "user_id"),)

    id: Mapped[str] = mapped_column(
        String,
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=random_uuid(),
    )

    user_id: Mapped[str | None] = mapped_column(String, ForeignKey("users.id"))

    event_date: Mapped[datetime | None] = mapped_column(DateTime)

    sport: Mapped[str | None] = mapped_column(Text)

    league: Mapped[str | None] = mapped_column(Text)

    team_a: Mapped[str | None] = mapped_column(Text)

    team_b: Mapped[str | None] = mapped_column(Text)

    profit_percentage: Mapped[Decimal | None] = mapped_column(Numeric(5, 2))

    status: Mapped[str | None] = mapped_column(
        Text,
        default="pending",
        server_default="pending",
    )

    is_checked: Mapped[bool | None] = mapped_column(
        Boolean,
        default=False,
        server_default=false(),
    )

    created_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return (
            f"<SurebetSet(id={self.id!r}, team_a={self.team_a!r}, "
            f"team_b={self.team_b!r}, status={self.status!r})>"
        )
