"""
Submission Service - admin-side queries and status changes

Listing, searching and updating grievances, suggestions, volunteers and
subscribers once the bot has created them. The bot itself only inserts.
"""
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from constituent_bot.core.exceptions import InvalidSubmissionStatusError
from constituent_bot.core.logging import get_logger
from constituent_bot.db.models import (
    GrievanceStatus,
    SubscriberStatus,
    SuggestionStatus,
    Voter,
    VolunteerStatus,
)
from constituent_bot.domain.services.reference_codes import SubmissionKind

logger = get_logger(__name__)

RECENT_ITEMS_LIMIT = 5


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def submission_to_dict(kind: SubmissionKind, record: Any) -> dict[str, Any]:
    """Flatten a submission row for JSON responses"""
    data: dict[str, Any] = {
        "reference_code": record.reference_code,
        "kind": kind.value,
        "voter_id": record.voter_id,
        "voter_name": record.voter_name,
        "phone_number": record.phone_number,
        "area": record.area,
        "district": record.district,
        "assembly_name": record.assembly_name,
        "part_number": record.part_number,
        "status": record.status,
        "location": None,
        "admin_notes": record.admin_notes,
        "created_at": _iso(record.created_at),
        "updated_at": _iso(record.updated_at),
    }
    if record.has_location:
        data["location"] = {
            "latitude": record.latitude,
            "longitude": record.longitude,
            "map_link": record.map_link,
            "actual_address": record.actual_address,
        }

    if kind is SubmissionKind.GRIEVANCE:
        data["category"] = record.category
        data["message"] = record.message
        data["resolution"] = record.resolution
        data["resolved_at"] = _iso(record.resolved_at)
    elif kind is SubmissionKind.SUGGESTION:
        data["message"] = record.message
    elif kind is SubmissionKind.VOLUNTEER:
        data["parliament_name"] = record.parliament_name
        data["participation_type"] = record.participation_type

    return data


def voter_to_dict(voter: Voter) -> dict[str, Any]:
    return {
        "epic_number": voter.epic_number,
        "name": voter.name,
        "age": voter.age,
        "gender": voter.gender,
        "relation_name": voter.relation_name,
        "relation_type": voter.relation_type,
        "area": voter.area,
        "district": voter.district,
        "assembly_name": voter.assembly_name,
        "part_number": voter.part_number,
        "parliament_name": voter.parliament_name,
        "status": voter.status,
    }


class SubmissionService:
    """Admin queries over the four submission tables"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_submissions(
        self,
        kind: SubmissionKind,
        *,
        status: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[Any], int]:
        """Newest-first page of ``kind`` records plus the total match count.

        ``search`` is a case-insensitive substring over voter name, reference
        code, phone number and, where the kind has one, the message.
        """
        model = kind.model
        conditions = []

        if status:
            self._ensure_valid_status(kind, status)
            conditions.append(model.status == status)

        if category and kind is SubmissionKind.GRIEVANCE:
            conditions.append(model.category == category)

        if search:
            pattern = f"%{search.strip().lower()}%"
            columns = [model.voter_name, model.reference_code, model.phone_number]
            if hasattr(model, "message"):
                columns.append(model.message)
            conditions.append(or_(*(func.lower(col).like(pattern) for col in columns)))

        count_result = await self.db.execute(
            select(func.count(model.id)).where(*conditions)
        )
        total = count_result.scalar() or 0

        offset = (page - 1) * limit
        result = await self.db.execute(
            select(model)
            .where(*conditions)
            .order_by(model.created_at.desc(), model.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def get_by_reference(self, reference_code: str) -> Optional[tuple[SubmissionKind, Any]]:
        """Look a record up by its public code; the prefix picks the table"""
        code = (reference_code or "").strip().upper()
        kind = SubmissionKind.from_reference_code(code)
        if kind is None:
            return None

        result = await self.db.execute(
            select(kind.model).where(kind.model.reference_code == code)
        )
        record = result.scalar_one_or_none()
        if record is None:
            return None
        return kind, record

    async def find_subscriber_by_phone(self, phone_number: str) -> Optional[Any]:
        model = SubmissionKind.SUBSCRIBER.model
        result = await self.db.execute(
            select(model)
            .where(
                model.phone_number == phone_number,
                model.status == SubscriberStatus.ACTIVE.value,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def update_status(
        self,
        kind: SubmissionKind,
        reference_code: str,
        *,
        status: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Optional[Any]:
        """Apply an admin status change / note. Returns the record, or None if no match.

        For grievances the note is the resolution text and moving to Resolved
        stamps ``resolved_at``; other kinds keep notes in ``admin_notes``.
        """
        if status is not None:
            self._ensure_valid_status(kind, status)

        code = (reference_code or "").strip().upper()
        result = await self.db.execute(
            select(kind.model).where(kind.model.reference_code == code)
        )
        record = result.scalar_one_or_none()
        if record is None:
            return None

        previous_status = record.status
        if status is not None:
            record.status = status
            if kind is SubmissionKind.GRIEVANCE:
                if status == GrievanceStatus.RESOLVED.value:
                    record.resolved_at = datetime.utcnow()
                else:
                    record.resolved_at = None

        if notes is not None:
            if kind is SubmissionKind.GRIEVANCE:
                record.resolution = notes
            else:
                record.admin_notes = notes

        record.updated_at = datetime.utcnow()
        await self.db.commit()
        await self.db.refresh(record)

        logger.info(
            "Submission updated",
            extra_data={
                "reference_code": code,
                "kind": kind.value,
                "old_status": previous_status,
                "new_status": record.status,
            }
        )
        return record

    async def list_voters(
        self,
        *,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[Voter], int]:
        conditions = []
        if search:
            pattern = f"%{search.strip().lower()}%"
            conditions.append(or_(
                func.lower(Voter.name).like(pattern),
                func.lower(Voter.epic_number).like(pattern),
                func.lower(Voter.assembly_name).like(pattern),
            ))

        count_result = await self.db.execute(
            select(func.count(Voter.id)).where(*conditions)
        )
        total = count_result.scalar() or 0

        result = await self.db.execute(
            select(Voter)
            .where(*conditions)
            .order_by(Voter.name.asc(), Voter.id.asc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def get_dashboard(self) -> dict[str, Any]:
        """Aggregate counts plus the latest few records of each actionable kind"""
        grievances = await self._count_by_status(SubmissionKind.GRIEVANCE)
        suggestions = await self._count_by_status(SubmissionKind.SUGGESTION)
        volunteers = await self._count_by_status(SubmissionKind.VOLUNTEER)
        subscribers = await self._count_by_status(SubmissionKind.SUBSCRIBER)

        voter_count = (await self.db.execute(select(func.count(Voter.id)))).scalar() or 0

        recent: dict[str, list[dict[str, Any]]] = {}
        for kind in (SubmissionKind.GRIEVANCE, SubmissionKind.SUGGESTION, SubmissionKind.VOLUNTEER):
            items, _ = await self.list_submissions(kind, limit=RECENT_ITEMS_LIMIT)
            recent[kind.value] = [submission_to_dict(kind, item) for item in items]

        return {
            "counts": {
                "voters": voter_count,
                "grievances": {
                    "total": sum(grievances.values()),
                    "open": grievances.get(GrievanceStatus.OPEN.value, 0),
                    "in_progress": grievances.get(GrievanceStatus.IN_PROGRESS.value, 0),
                    "resolved": grievances.get(GrievanceStatus.RESOLVED.value, 0),
                },
                "suggestions": {
                    "total": sum(suggestions.values()),
                    "pending": suggestions.get(SuggestionStatus.PENDING.value, 0),
                },
                "volunteers": {
                    "total": sum(volunteers.values()),
                    "pending": volunteers.get(VolunteerStatus.PENDING.value, 0),
                    "approved": volunteers.get(VolunteerStatus.APPROVED.value, 0),
                },
                "subscribers": {
                    "total": sum(subscribers.values()),
                    "active": subscribers.get(SubscriberStatus.ACTIVE.value, 0),
                },
            },
            "recent": recent,
        }

    async def _count_by_status(self, kind: SubmissionKind) -> dict[str, int]:
        model = kind.model
        result = await self.db.execute(
            select(model.status, func.count(model.id)).group_by(model.status)
        )
        return {row[0]: row[1] for row in result.all()}

    @staticmethod
    def _ensure_valid_status(kind: SubmissionKind, status: str) -> None:
        if status not in kind.allowed_statuses:
            raise InvalidSubmissionStatusError(kind.value, status, kind.allowed_statuses)
