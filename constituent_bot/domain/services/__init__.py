"""
Domain Services
"""
from constituent_bot.domain.services.record_store import RecordStore
from constituent_bot.domain.services.submission_service import SubmissionService
from constituent_bot.domain.services.geocoder import ReverseGeocoder

__all__ = [
    "RecordStore",
    "SubmissionService",
    "ReverseGeocoder",
]
