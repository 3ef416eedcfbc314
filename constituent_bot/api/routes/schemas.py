"""
Shared API schemas - models reused across the admin, status and chat routes
"""
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from constituent_bot.core.validation import phone_validator


class ActionResponse(BaseModel):
    """Result of an admin action"""
    success: bool
    message: str


class LocationResponse(BaseModel):
    latitude: float
    longitude: float
    map_link: Optional[str] = None
    actual_address: Optional[str] = None


class SubmissionItemResponse(BaseModel):
    """
    One grievance, suggestion, volunteer or subscriber record.

    Kind-specific fields are None for the kinds that do not carry them.
    """
    reference_code: str
    kind: str
    voter_id: str
    voter_name: Optional[str] = None
    phone_number: str
    area: Optional[str] = None
    district: Optional[str] = None
    assembly_name: Optional[str] = None
    part_number: Optional[str] = None
    status: str
    location: Optional[LocationResponse] = None
    admin_notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    # Grievance / suggestion
    category: Optional[str] = None
    message: Optional[str] = None
    resolution: Optional[str] = None
    resolved_at: Optional[str] = None
    # Volunteer
    parliament_name: Optional[str] = None
    participation_type: Optional[str] = None


class PaginatedSubmissionsResponse(BaseModel):
    items: List[SubmissionItemResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class VoterItemResponse(BaseModel):
    epic_number: str
    name: str
    age: Optional[int] = None
    gender: Optional[str] = None
    relation_name: Optional[str] = None
    relation_type: Optional[str] = None
    area: Optional[str] = None
    district: Optional[str] = None
    assembly_name: Optional[str] = None
    part_number: Optional[str] = None
    parliament_name: Optional[str] = None
    status: Optional[str] = None


class PaginatedVotersResponse(BaseModel):
    items: List[VoterItemResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class SubmissionUpdateRequest(BaseModel):
    """Admin status change; at least one field must be given"""
    status: Optional[str] = Field(None, max_length=20)
    notes: Optional[str] = Field(None, max_length=2000)


class NotifyRequest(BaseModel):
    """Direct WhatsApp text to a constituent"""
    phone_number: str = Field(..., min_length=10, max_length=20)
    message: str = Field(..., min_length=1, max_length=4096)

    @field_validator("phone_number")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        return phone_validator(v)


class StatusLookupResponse(BaseModel):
    found: bool
    kind: str
    record: SubmissionItemResponse


class ChatRequest(BaseModel):
    """One simulated inbound message"""
    phone_number: str = Field(..., min_length=1, max_length=32)
    message: str = Field("", max_length=4096)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class ChatResponse(BaseModel):
    """Outbound reply in the channel-neutral contract shape"""
    reply: dict[str, Any]
    state: Optional[str] = None


def total_pages(total: int, limit: int) -> int:
    return max(1, (total + limit - 1) // limit)
