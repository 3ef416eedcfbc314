"""
Suggestion Model - ideas and improvements
"""
import enum
from sqlalchemy import Column, Text

from constituent_bot.db.database import Base
from constituent_bot.db.models.submission import SubmissionMixin


class SuggestionStatus(str, enum.Enum):
    PENDING = "Pending"
    REVIEWED = "Reviewed"
    IMPLEMENTED = "Implemented"


class Suggestion(SubmissionMixin, Base):
    __tablename__ = "suggestions"

    message = Column(Text, nullable=False)
