"""
Audit Log Model - append-only trail of bot and admin activity

Written best-effort: a failed audit insert is logged and never breaks the
conversation or the admin request that triggered it.
"""
import enum
from datetime import datetime
from sqlalchemy import Column, Integer, DateTime, String, Enum as SQLEnum
from sqlalchemy.types import JSON

from constituent_bot.db.database import Base


class AuditAction(str, enum.Enum):
    """Actions recorded in the audit log"""
    INCOMING_MESSAGE = "incoming_message"
    EPIC_VERIFICATION = "epic_verification"
    GRIEVANCE_CREATED = "grievance_created"
    SUGGESTION_CREATED = "suggestion_created"
    VOLUNTEER_REGISTERED = "volunteer_registered"
    SUBSCRIBER_REGISTERED = "subscriber_registered"
    SUBMISSION_STATUS_UPDATED = "submission_status_updated"
    ADMIN_NOTIFY = "admin_notify"


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    action = Column(SQLEnum(AuditAction), nullable=False, index=True)
    phone_number = Column(String(20), nullable=True, index=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
