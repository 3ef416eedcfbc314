"""
Voter roll import - maps the election-roll CSV export onto Voter rows
"""
import csv
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional, TextIO

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from constituent_bot.core.logging import get_logger
from constituent_bot.core.validation import EpicNumberValidator
from constituent_bot.db.models import Voter

logger = get_logger(__name__)

BATCH_SIZE = 500


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def _to_int(value: Optional[str]) -> Optional[int]:
    value = _clean(value)
    if not value:
        return None
    try:
        return int(float(value))
    except ValueError:
        return None


def _number_text(value: Optional[str]) -> Optional[str]:
    """Roll numbers are stored as text, so a spreadsheet 12.0 becomes 12"""
    number = _to_int(value)
    if number is not None:
        return str(number)
    return _clean(value) or None


def row_to_voter_fields(row: dict[str, str]) -> Optional[dict[str, Any]]:
    """Column mapping for one CSV row, or None when the row has no EPIC number"""
    epic_number = EpicNumberValidator.normalize(row.get("epicNumber", ""))
    if not epic_number:
        return None

    assembly = _clean(row.get("asmblyName"))
    district = _clean(row.get("districtValue"))
    return {
        "epic_number": epic_number,
        "name": _clean(row.get("applicantFirstName")),
        "age": _to_int(row.get("age_x")),
        "gender": _clean(row.get("gender_x")) or None,
        "relation_name": _clean(row.get("relationName")) or None,
        "relation_type": _clean(row.get("relationType")) or None,
        "area": f"{assembly}, {district}",
        "assembly_name": assembly or None,
        "part_number": _number_text(row.get("partNumber")),
        "ac_number": _number_text(row.get("acNumber")),
        "parliament_name": _clean(row.get("prlmntName")) or None,
        "parliament_number": _number_text(row.get("prlmntNo")),
        "district": district or None,
        "state_name": _clean(row.get("stateName")) or None,
        "status": "Active",
    }


def parse_voter_csv(handle: TextIO) -> Iterator[dict[str, Any]]:
    """Mapped rows from an open CSV file; rows without an EPIC number are skipped.

    A later row with the same EPIC number replaces the earlier one.
    """
    seen: dict[str, dict[str, Any]] = {}
    skipped = 0
    for row in csv.DictReader(handle):
        fields = row_to_voter_fields(row)
        if fields is None:
            skipped += 1
            continue
        seen[fields["epic_number"]] = fields

    if skipped:
        logger.warning("Skipped CSV rows without EPIC number", extra_data={"count": skipped})
    yield from seen.values()


async def import_voters(
    db: AsyncSession,
    rows: Iterable[dict[str, Any]],
    *,
    replace_existing: bool = True,
) -> int:
    """Insert voter rows and return how many were written.

    With ``replace_existing`` the table is cleared first. Otherwise rows whose
    EPIC number is already present are left untouched.
    """
    if replace_existing:
        existing = (await db.execute(select(func.count(Voter.id)))).scalar() or 0
        if existing:
            logger.info("Clearing existing voter roll", extra_data={"count": existing})
            await db.execute(delete(Voter))
        known: set[str] = set()
    else:
        result = await db.execute(select(Voter.epic_number))
        known = set(result.scalars().all())

    inserted = 0
    batch: list[Voter] = []
    for fields in rows:
        if fields["epic_number"] in known:
            continue
        known.add(fields["epic_number"])
        batch.append(Voter(**fields))
        if len(batch) >= BATCH_SIZE:
            db.add_all(batch)
            await db.flush()
            inserted += len(batch)
            batch = []

    if batch:
        db.add_all(batch)
        inserted += len(batch)

    await db.commit()
    logger.info("Voter roll imported", extra_data={"inserted": inserted})
    return inserted


async def import_voters_from_file(
    db: AsyncSession,
    path: Path,
    *,
    replace_existing: bool = True,
) -> int:
    with path.open(newline="", encoding="utf-8-sig") as handle:
        rows = list(parse_voter_csv(handle))
    logger.info("Parsed voter CSV", extra_data={"path": str(path), "rows": len(rows)})
    return await import_voters(db, rows, replace_existing=replace_existing)
