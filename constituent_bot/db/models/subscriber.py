"""
Subscriber Model - voters who opted in to campaign updates
"""
import enum

from constituent_bot.db.database import Base
from constituent_bot.db.models.submission import SubmissionMixin


class SubscriberStatus(str, enum.Enum):
    ACTIVE = "Active"
    UNSUBSCRIBED = "Unsubscribed"


class Subscriber(SubmissionMixin, Base):
    __tablename__ = "subscribers"
