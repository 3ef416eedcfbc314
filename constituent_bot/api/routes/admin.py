"""
Admin API - submissions, voter roll, dashboard and direct notifications

Every endpoint requires the X-Admin-API-Key header.
"""
from typing import Any, Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from constituent_bot.api.dependencies.admin_auth import require_admin_api_key
from constituent_bot.api.dependencies.engine import get_record_store
from constituent_bot.api.routes.schemas import (
    ActionResponse,
    NotifyRequest,
    PaginatedSubmissionsResponse,
    PaginatedVotersResponse,
    SubmissionItemResponse,
    SubmissionUpdateRequest,
    VoterItemResponse,
    total_pages,
)
from constituent_bot.core.exceptions import SubmissionNotFoundError, ValidationException
from constituent_bot.core.logging import get_logger
from constituent_bot.core.validation import PhoneNumberValidator
from constituent_bot.db.database import get_db
from constituent_bot.db.models import AuditAction
from constituent_bot.domain.services.record_store import RecordStore, StoreError
from constituent_bot.domain.services.reference_codes import SubmissionKind
from constituent_bot.domain.services.submission_service import (
    SubmissionService,
    submission_to_dict,
    voter_to_dict,
)
from constituent_bot.domain.services.whatsapp import get_whatsapp_provider

logger = get_logger(__name__)

router = APIRouter(dependencies=[Depends(require_admin_api_key)])


# ==================== Dashboard ====================


@router.get(
    "/dashboard",
    summary="Dashboard",
    description="Counts per kind and status plus the five most recent grievances, suggestions and volunteers.",
    tags=["Admin"],
)
async def get_dashboard(
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    return await SubmissionService(db).get_dashboard()


# ==================== Voter roll ====================


@router.get(
    "/voters",
    response_model=PaginatedVotersResponse,
    summary="Voter roll",
    description="Read-only voter roll with search over name, EPIC number and assembly.",
    tags=["Admin"],
)
async def list_voters(
    db: AsyncSession = Depends(get_db),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
) -> PaginatedVotersResponse:
    voters, total = await SubmissionService(db).list_voters(search=search, page=page, limit=limit)
    return PaginatedVotersResponse(
        items=[VoterItemResponse(**voter_to_dict(v)) for v in voters],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages(total, limit),
    )


# ==================== Notifications ====================


@router.post(
    "/notify",
    response_model=ActionResponse,
    summary="Message a constituent",
    description="Send a WhatsApp text to one number. A bare 10-digit number is treated as Indian (91).",
    responses={
        503: {"description": "WhatsApp unavailable"},
    },
    tags=["Admin"],
)
async def notify_constituent(
    data: NotifyRequest,
    record_store: RecordStore = Depends(get_record_store),
) -> ActionResponse:
    await get_whatsapp_provider().send_text(data.phone_number, data.message)

    await record_store.append_audit_log(
        AuditAction.ADMIN_NOTIFY,
        data.phone_number,
        {"length": len(data.message)},
    )
    logger.info(
        "Admin notification sent",
        extra_data={"phone": PhoneNumberValidator.mask(data.phone_number)},
    )
    return ActionResponse(success=True, message="Message sent")


# ==================== Submissions ====================


@router.get(
    "/{kind}",
    response_model=PaginatedSubmissionsResponse,
    summary="List submissions",
    description=(
        "Grievances, suggestions, volunteers or subscribers, newest first. "
        "`category` applies to grievances only."
    ),
    responses={
        400: {"description": "Unknown status for this kind"},
    },
    tags=["Admin"],
)
async def list_submissions(
    kind: SubmissionKind,
    db: AsyncSession = Depends(get_db),
    status_filter: Optional[str] = Query(None, alias="status", max_length=20),
    category: Optional[str] = Query(None, max_length=100),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
) -> PaginatedSubmissionsResponse:
    items, total = await SubmissionService(db).list_submissions(
        kind,
        status=status_filter,
        category=category,
        search=search,
        page=page,
        limit=limit,
    )
    return PaginatedSubmissionsResponse(
        items=[SubmissionItemResponse(**submission_to_dict(kind, item)) for item in items],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages(total, limit),
    )


@router.patch(
    "/{kind}/{reference_code}",
    response_model=SubmissionItemResponse,
    summary="Update a submission",
    description=(
        "Change status and/or notes. For grievances the notes are the resolution "
        "text and moving to Resolved records the resolution time."
    ),
    responses={
        400: {"description": "Unknown status or empty update"},
        404: {"description": "No record with this reference code"},
        503: {"description": "Database unavailable"},
    },
    tags=["Admin"],
)
async def update_submission(
    kind: SubmissionKind,
    data: SubmissionUpdateRequest,
    reference_code: str = Path(..., min_length=1, max_length=16),
    record_store: RecordStore = Depends(get_record_store),
) -> SubmissionItemResponse:
    if data.status is None and data.notes is None:
        raise ValidationException("Nothing to update, give status and/or notes")

    result = await record_store.update_submission_status(
        kind, reference_code, status=data.status, notes=data.notes
    )
    if isinstance(result, StoreError):
        raise result.error

    record = result.value
    if record is None:
        raise SubmissionNotFoundError(reference_code)

    await record_store.append_audit_log(
        AuditAction.SUBMISSION_STATUS_UPDATED,
        record.phone_number,
        {
            "kind": kind.value,
            "reference_code": record.reference_code,
            "status": record.status,
            "notes_updated": data.notes is not None,
        },
    )
    return SubmissionItemResponse(**submission_to_dict(kind, record))
