"""
Grievance Model - reported local issues
"""
import enum
from sqlalchemy import Column, String, DateTime, Text

from constituent_bot.db.database import Base
from constituent_bot.db.models.submission import SubmissionMixin


class GrievanceStatus(str, enum.Enum):
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"


class Grievance(SubmissionMixin, Base):
    """Issue reported through the bot's "Report local issue" flow"""

    __tablename__ = "grievances"

    category = Column(String(50), nullable=False, index=True)
    # "SKIPPED" when the voter chose not to describe the issue
    message = Column(Text, nullable=False)
    resolution = Column(Text, nullable=True)
    resolved_at = Column(DateTime, nullable=True)
