"""
Voter Model - the constituency voter roll

Read-only for the bot; rows are loaded by scripts/import_voters.py.
"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime

from constituent_bot.db.database import Base


class Voter(Base):
    """One voter-roll entry, keyed by EPIC number"""

    __tablename__ = "voters"

    id = Column(Integer, primary_key=True, index=True)
    epic_number = Column(String(15), unique=True, nullable=False, index=True)
    name = Column(String(200), nullable=False, index=True)
    age = Column(Integer, nullable=True)
    gender = Column(String(10), nullable=True)
    relation_name = Column(String(200), nullable=True)
    relation_type = Column(String(20), nullable=True)

    # "<assembly>, <district>"
    area = Column(String(300), nullable=True)
    district = Column(String(100), nullable=True)
    state_name = Column(String(100), nullable=True)
    assembly_name = Column(String(100), nullable=True)
    ac_number = Column(String(10), nullable=True)
    part_number = Column(String(20), nullable=True, index=True)
    parliament_name = Column(String(100), nullable=True)
    parliament_number = Column(String(10), nullable=True)

    status = Column(String(20), nullable=False, default="Active")
    imported_at = Column(DateTime, default=datetime.utcnow)
