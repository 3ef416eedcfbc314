"""
Record Store - persistence as seen by the dialogue engine

Every call opens its own database session, so the store can be shared by
concurrent conversations. Database failures come back as ``StoreError`` values
instead of exceptions; the engine branches on the result type. A dropped or
refused connection surfaces from the driver as ``OSError`` rather than a
SQLAlchemy error, so both count as a store failure.
"""
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from constituent_bot.core.config import settings
from constituent_bot.core.exceptions import (
    RecordStoreError,
    ReferenceCodeExhaustedError,
)
from constituent_bot.core.logging import get_logger
from constituent_bot.core.validation import PhoneNumberValidator
from constituent_bot.db.models import AuditAction, AuditLog, Voter
from constituent_bot.domain.services.reference_codes import (
    SubmissionKind,
    generate_reference_code,
)
from constituent_bot.domain.services.submission_service import SubmissionService

logger = get_logger(__name__)

T = TypeVar("T")

_STORE_FAILURES = (SQLAlchemyError, OSError)


@dataclass(frozen=True)
class StoreOk(Generic[T]):
    value: T


@dataclass(frozen=True)
class StoreError:
    error: RecordStoreError

    @property
    def message(self) -> str:
        return self.error.message


@dataclass(frozen=True)
class VoterIdentity:
    """Snapshot of a voter-roll row taken when the EPIC number is verified"""

    voter_id: str
    name: str
    age: Optional[int] = None
    gender: Optional[str] = None
    area: Optional[str] = None
    district: Optional[str] = None
    assembly_name: Optional[str] = None
    part_number: Optional[str] = None
    relation_name: Optional[str] = None
    parliament_name: Optional[str] = None

    @classmethod
    def from_voter(cls, voter: Voter) -> "VoterIdentity":
        return cls(
            voter_id=voter.epic_number,
            name=voter.name,
            age=voter.age,
            gender=voter.gender,
            area=voter.area,
            district=voter.district,
            assembly_name=voter.assembly_name,
            part_number=voter.part_number,
            relation_name=voter.relation_name,
            parliament_name=voter.parliament_name,
        )

    def submission_fields(self) -> dict[str, Any]:
        """Columns copied onto every submission record"""
        return {
            "voter_id": self.voter_id,
            "voter_name": self.name,
            "area": self.area,
            "district": self.district,
            "assembly_name": self.assembly_name,
            "part_number": self.part_number,
        }


class RecordStore:
    """Voter lookups, submission inserts/updates and the audit trail"""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_code_attempts: int | None = None,
    ):
        self._session_factory = session_factory
        self._max_code_attempts = max_code_attempts or settings.REFERENCE_CODE_MAX_ATTEMPTS

    async def find_voter(self, voter_id: str) -> StoreOk[Optional[VoterIdentity]] | StoreError:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(Voter).where(Voter.epic_number == voter_id)
                )
                voter = result.scalar_one_or_none()
        except _STORE_FAILURES as e:
            return self._failure("find_voter", e, voter_id=voter_id)

        return StoreOk(VoterIdentity.from_voter(voter) if voter else None)

    async def find_subscriber_by_phone(self, phone_number: str) -> StoreOk[Optional[str]] | StoreError:
        """Reference code of an active subscription for this phone, if any"""
        try:
            async with self._session_factory() as db:
                subscriber = await SubmissionService(db).find_subscriber_by_phone(phone_number)
        except _STORE_FAILURES as e:
            return self._failure(
                "find_subscriber_by_phone", e, phone=PhoneNumberValidator.mask(phone_number)
            )

        return StoreOk(subscriber.reference_code if subscriber else None)

    async def insert_submission(self, kind: SubmissionKind, fields: dict[str, Any]) -> StoreOk[str] | StoreError:
        """Insert a new ``kind`` record and return its reference code.

        The code column is unique; a clash rolls back and retries with a fresh
        code, up to ``max_code_attempts`` times.
        """
        for attempt in range(1, self._max_code_attempts + 1):
            code = generate_reference_code(kind)
            try:
                async with self._session_factory() as db:
                    db.add(kind.model(
                        reference_code=code,
                        status=kind.initial_status,
                        **fields,
                    ))
                    await db.commit()
            except IntegrityError:
                logger.warning(
                    "Reference code clash, regenerating",
                    extra_data={"kind": kind.value, "reference_code": code, "attempt": attempt},
                )
                continue
            except _STORE_FAILURES as e:
                return self._failure("insert_submission", e, kind=kind.value)

            logger.info(
                "Submission created",
                extra_data={
                    "kind": kind.value,
                    "reference_code": code,
                    "phone": PhoneNumberValidator.mask(fields.get("phone_number", "")),
                }
            )
            return StoreOk(code)

        error = ReferenceCodeExhaustedError(kind.value, self._max_code_attempts)
        logger.error(error.message, extra_data=error.details)
        return StoreError(error)

    async def update_submission_status(
        self,
        kind: SubmissionKind,
        reference_code: str,
        status: Optional[str],
        notes: Optional[str] = None,
    ) -> StoreOk[Optional[Any]] | StoreError:
        """The updated record, or None when no record matched.

        An unknown status raises InvalidSubmissionStatusError.
        """
        try:
            async with self._session_factory() as db:
                record = await SubmissionService(db).update_status(
                    kind, reference_code, status=status, notes=notes
                )
        except _STORE_FAILURES as e:
            return self._failure("update_submission_status", e, reference_code=reference_code)

        return StoreOk(record)

    async def find_by_reference(self, reference_code: str) -> StoreOk[Optional[tuple[SubmissionKind, Any]]] | StoreError:
        try:
            async with self._session_factory() as db:
                found = await SubmissionService(db).get_by_reference(reference_code)
        except _STORE_FAILURES as e:
            return self._failure("find_by_reference", e, reference_code=reference_code)

        return StoreOk(found)

    async def append_audit_log(
        self,
        action: AuditAction,
        phone_number: Optional[str],
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        """Best-effort audit insert; any failure is logged and dropped"""
        try:
            async with self._session_factory() as db:
                db.add(AuditLog(
                    action=action,
                    phone_number=phone_number,
                    details=details or {},
                ))
                await db.commit()
        except Exception as e:
            logger.warning(
                "Audit log write failed",
                extra_data={
                    "error_type": type(e).__name__,
                    "action": action.value,
                    "phone": PhoneNumberValidator.mask(phone_number or ""),
                    "error": str(e),
                }
            )

    @staticmethod
    def _failure(operation: str, exc: Exception, **context: Any) -> StoreError:
        error = RecordStoreError(operation, str(exc), details=dict(context))
        logger.error(
            f"Record store {operation} failed",
            extra_data={"operation": operation, "error": str(exc), **context},
            exc_info=True,
        )
        return StoreError(error)
