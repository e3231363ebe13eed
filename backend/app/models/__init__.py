"""Models layer - SQLAlchemy ORM models.

Models define the surebet tracker schema that the migration service
recreates on target databases. All models inherit from the Base class
defined in core.database.
"""

from app.core.database import Base
from app.models.account_holder import AccountHolder
from app.models.bet import Bet
from app.models.betting_house import BettingHouse
from app.models.surebet_set import SurebetSet
from app.models.user import User
from app.models.user_session import UserSession

__all__ = [
    "Base",
    "AccountHolder",
    "Bet",
    "BettingHouse",
    "SurebetSet",
    "User",
    "UserSession",
]
