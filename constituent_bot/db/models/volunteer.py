"""
Volunteer Model - participation registrations
"""
import enum
from sqlalchemy import Column, String

from constituent_bot.db.database import Base
from constituent_bot.db.models.submission import SubmissionMixin


class VolunteerStatus(str, enum.Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class Volunteer(SubmissionMixin, Base):
    __tablename__ = "volunteers"

    parliament_name = Column(String(100), nullable=True)
    # One of the four menu labels, or whatever the voter typed instead
    participation_type = Column(String(250), nullable=False)
