"""
Database Models
"""
from constituent_bot.db.models.voter import Voter
from constituent_bot.db.models.grievance import Grievance, GrievanceStatus
from constituent_bot.db.models.suggestion import Suggestion, SuggestionStatus
from constituent_bot.db.models.volunteer import Volunteer, VolunteerStatus
from constituent_bot.db.models.subscriber import Subscriber, SubscriberStatus
from constituent_bot.db.models.audit_log import AuditLog, AuditAction

__all__ = [
    "Voter",
    "Grievance",
    "GrievanceStatus",
    "Suggestion",
    "SuggestionStatus",
    "Volunteer",
    "VolunteerStatus",
    "Subscriber",
    "SubscriberStatus",
    "AuditLog",
    "AuditAction",
]
