"""Bet model.

One leg of a surebet set, placed at a betting house.
Money columns are NUMERIC(10,2); odds are NUMERIC(8,3).
"""

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.models.defaults import random_uuid


class Bet(Base):
    """Bet model.

    Attributes:
        id: Random UUID string primary key
        surebet_set_id: Parent surebet set
        betting_house_id: Where the bet was placed
        bet_type: Market/selection description
        odd: Decimal odd
        stake: Amount wagered
        potential_profit: Profit if this leg wins
        result: 'won', 'lost', 'returned' or NULL while open
        actual_profit: Settled profit
        created_at: Timestamp when record was created
    """

    __tablename__ = "bets"
    __table_args__ = (Index("idx_bets_surebet_set", "surebet_set_id"),)

    id: Mapped[str] = mapped_column(
        String,
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=random_uuid(),
    )

    surebet_set_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("surebet_sets.id")
    )

    betting_house_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("betting_houses.id")
    )

    bet_type: Mapped[str] = mapped_column(Text, nullable=False)

    odd: Mapped[Decimal] = mapped_column(Numeric(8, 3), nullable=False)

    stake: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    potential_profit: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    result: Mapped[str | None] = mapped_column(Text)

    actual_profit: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))

    created_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<Bet(id={self.id!r}, bet_type={self.bet_type!r}, odd={self.odd!r})>"
