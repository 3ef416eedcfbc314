"""
Submission columns shared by grievances, suggestions, volunteers and subscribers

Identity fields are copied from the voter roll when the record is created and
are never re-joined, so a later roll import does not rewrite history.
"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Float, Text


class SubmissionMixin:
    """Columns every submission kind carries"""

    id = Column(Integer, primary_key=True, index=True)
    # GRV12345 / SUG12345 / VOL12345 / SUB12345
    reference_code = Column(String(8), unique=True, nullable=False, index=True)

    # Submitter snapshot
    voter_id = Column(String(15), nullable=False, index=True)
    voter_name = Column(String(200), nullable=True)
    phone_number = Column(String(20), nullable=False, index=True)
    area = Column(String(300), nullable=True)
    district = Column(String(100), nullable=True)
    assembly_name = Column(String(100), nullable=True)
    part_number = Column(String(20), nullable=True)

    status = Column(String(20), nullable=False, index=True)

    # Optional shared location
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    map_link = Column(String(200), nullable=True)
    actual_address = Column(String(500), nullable=True)

    admin_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None
