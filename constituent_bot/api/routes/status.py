"""
Public status lookup by reference code
"""
from fastapi import APIRouter, Depends, Path

from constituent_bot.api.dependencies.engine import get_record_store
from constituent_bot.api.routes.schemas import StatusLookupResponse, SubmissionItemResponse
from constituent_bot.core.exceptions import SubmissionNotFoundError
from constituent_bot.core.validation import ReferenceCodeValidator
from constituent_bot.domain.services.record_store import RecordStore, StoreError
from constituent_bot.domain.services.submission_service import submission_to_dict

router = APIRouter()


@router.get(
    "/{reference_code}",
    response_model=StatusLookupResponse,
    summary="Submission status",
    description="Look up a grievance, suggestion, volunteer or subscriber record by its reference code (e.g. GRV12345).",
    responses={
        404: {"description": "No record with this reference code"},
        503: {"description": "Database unavailable"},
    },
    tags=["Status"],
)
async def get_submission_status(
    reference_code: str = Path(..., min_length=1, max_length=16),
    record_store: RecordStore = Depends(get_record_store),
) -> StatusLookupResponse:
    code = ReferenceCodeValidator.normalize(reference_code)
    found = None
    if ReferenceCodeValidator.validate(code):
        result = await record_store.find_by_reference(code)
        if isinstance(result, StoreError):
            raise result.error
        found = result.value
    if found is None:
        raise SubmissionNotFoundError(code)

    kind, record = found
    return StatusLookupResponse(
        found=True,
        kind=kind.value,
        record=SubmissionItemResponse(**submission_to_dict(kind, record)),
    )
