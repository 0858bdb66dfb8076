"""Record store: one health record per user per calendar day, plus patient profiles.

Health records are written through :func:`upsert`. A full submission is
written with a single ``INSERT ... ON CONFLICT (user_id, day) DO UPDATE`` so
two concurrent submissions for the same day can never both create a row; the
unique constraint on ``(user_id, day)`` backs this up, and a violation is
retried once before being reported as a conflict.
"""
import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic.alias_generators import to_camel
from sqlalchemy import func, select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from healthlog.days import DayInput, day_interval, end_of_day, normalize_day, parse_day
from healthlog.errors import (
    RecordValidationError,
    StoreUnavailableError,
    UpsertConflictError,
)
from healthlog.models import HealthRecord, PatientProfile
from healthlog.schemas import HealthDataSubmission, PatientProfileUpdate

logger = logging.getLogger(__name__)

# Fields a submission must carry when no record exists yet for the day
REQUIRED_ON_CREATE = ("water_intake", "urine_color")

UPSERT_ATTEMPTS = 2


@contextmanager
def store_errors(action: str):
    try:
        yield
    except (OperationalError, InterfaceError, OSError) as e:
        logger.error("%s failed, database unavailable: %s", action, e)
        raise StoreUnavailableError("database unavailable, please retry") from e


def _insert_for(db: AsyncSession):
    dialect = db.bind.dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise RuntimeError(f"unsupported database dialect: {dialect}")


# ---------------------------------------------------------------------------
# Merge rules
# ---------------------------------------------------------------------------
def merge_values(submission: HealthDataSubmission) -> Dict[str, Any]:
    """Columns a submission overwrites on an existing record.

    Required scalars and the dialysis flag are overwritten whenever they are
    supplied, zero and false included. Optional fields only overwrite when
    the supplied value is non-empty, so a blank value never clears one.
    """
    values: Dict[str, Any] = {}

    if submission.water_intake is not None:
        values["water_intake"] = submission.water_intake
    if submission.bathroom_visits is not None:
        values["bathroom_visits"] = submission.bathroom_visits
    if submission.stress_level is not None:
        values["stress_level"] = submission.stress_level
    if submission.urine_color is not None:
        values["urine_color"] = submission.urine_color.value
    if submission.dialysis is not None:
        values["dialysis_performed"] = submission.dialysis

    bp = submission.blood_pressure
    if bp is not None and not bp.is_empty():
        values["systolic"] = bp.systolic
        values["diastolic"] = bp.diastolic
    if submission.weight:
        values["weight"] = submission.weight
    if submission.medications:
        values["medications"] = [m.model_dump() for m in submission.medications]
    if submission.notes:
        values["notes"] = submission.notes

    return values


def create_values(
    user_id: str, day: datetime, submission: HealthDataSubmission
) -> Dict[str, Any]:
    """Column values for a brand new record, defaults applied."""
    bp = submission.blood_pressure
    return {
        "id": uuid.uuid4(),
        "user_id": user_id,
        "day": day,
        "water_intake": submission.water_intake,
        "bathroom_visits": (
            submission.bathroom_visits if submission.bathroom_visits is not None else 0
        ),
        "stress_level": (
            submission.stress_level if submission.stress_level is not None else 1
        ),
        "urine_color": submission.urine_color.value,
        "dialysis_performed": bool(submission.dialysis),
        "systolic": bp.systolic if bp else None,
        "diastolic": bp.diastolic if bp else None,
        "weight": submission.weight,
        "medications": (
            [m.model_dump() for m in submission.medications]
            if submission.medications
            else None
        ),
        "notes": submission.notes,
    }


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
async def _find_day(
    db: AsyncSession, user_id: str, day: datetime
) -> Optional[HealthRecord]:
    start, end = day_interval(day)
    result = await db.execute(
        select(HealthRecord)
        .where(
            HealthRecord.user_id == user_id,
            HealthRecord.day >= start,
            HealthRecord.day < end,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def get_by_day(
    db: AsyncSession, user_id: str, when: DayInput
) -> Optional[HealthRecord]:
    """Return the user's record for the calendar day of ``when``, or None."""
    day = normalize_day(parse_day(when))
    with store_errors("get_by_day"):
        return await _find_day(db, user_id, day)


async def get_by_range(
    db: AsyncSession, user_id: str, start: DayInput, end: DayInput
) -> List[HealthRecord]:
    """Records from the start of ``start``'s day through the end of ``end``'s day.

    Ordered by day, oldest first. An inverted interval yields an empty list.
    """
    range_start = normalize_day(parse_day(start))
    range_end = end_of_day(parse_day(end))

    with store_errors("get_by_range"):
        result = await db.execute(
            select(HealthRecord)
            .where(
                HealthRecord.user_id == user_id,
                HealthRecord.day >= range_start,
                HealthRecord.day <= range_end,
            )
            .order_by(HealthRecord.day.asc())
        )
        return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
async def _write(
    db: AsyncSession, user_id: str, day: datetime, submission: HealthDataSubmission
) -> HealthRecord:
    missing = [f for f in REQUIRED_ON_CREATE if getattr(submission, f) is None]

    if not missing:
        insert = _insert_for(db)
        stmt = insert(HealthRecord).values(**create_values(user_id, day, submission))
        set_ = {column: stmt.excluded[column] for column in merge_values(submission)}
        set_["updated_at"] = func.now()
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "day"],
            set_=set_,
        )
        await db.execute(stmt)
    else:
        # Partial submission: only valid as an update of an existing day
        record = await _find_day(db, user_id, day)
        if record is None:
            names = ", ".join(to_camel(f) for f in missing)
            raise RecordValidationError(f"{names} required for a new day")
        for column, value in merge_values(submission).items():
            setattr(record, column, value)
        await db.flush()

    return await _find_day(db, user_id, day)


async def upsert(
    db: AsyncSession, user_id: str, submission: HealthDataSubmission
) -> HealthRecord:
    """Create the user's record for the submission's day, or merge into it."""
    day = normalize_day(submission.date)

    for attempt in range(1, UPSERT_ATTEMPTS + 1):
        try:
            with store_errors("upsert"):
                record = await _write(db, user_id, day, submission)
                await db.commit()
        except IntegrityError as e:
            await db.rollback()
            if attempt < UPSERT_ATTEMPTS:
                logger.warning(
                    "Upsert conflict, retrying: user=%s day=%s", user_id, day.date()
                )
                continue
            logger.error(
                "Upsert conflict persisted: user=%s day=%s: %s", user_id, day.date(), e
            )
            raise UpsertConflictError(
                "conflicting update for this day, please retry"
            ) from e
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Upsert OK: user=%s day=%s water=%.2f",
            user_id,
            day.date(),
            record.water_intake,
        )
        return record


# ---------------------------------------------------------------------------
# Patient profile
# ---------------------------------------------------------------------------
async def _find_profile(db: AsyncSession, user_id: str) -> Optional[PatientProfile]:
    result = await db.execute(
        select(PatientProfile)
        .where(PatientProfile.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def get_profile(db: AsyncSession, user_id: str) -> Optional[PatientProfile]:
    with store_errors("get_profile"):
        return await _find_profile(db, user_id)


async def update_profile(
    db: AsyncSession, user_id: str, update: PatientProfileUpdate
) -> PatientProfile:
    """Shallow-merge the supplied fields into the user's profile, creating it if needed."""
    values = {field: getattr(update, field) for field in update.model_fields_set}
    if values.get("gender") is not None:
        values["gender"] = values["gender"].value

    insert = _insert_for(db)
    stmt = insert(PatientProfile).values(id=uuid.uuid4(), user_id=user_id, **values)
    set_ = {column: stmt.excluded[column] for column in values}
    set_["updated_at"] = func.now()
    stmt = stmt.on_conflict_do_update(index_elements=["user_id"], set_=set_)

    try:
        with store_errors("update_profile"):
            await db.execute(stmt)
            profile = await _find_profile(db, user_id)
            await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Profile updated: user=%s fields=%s", user_id, sorted(values))
    return profile


# ---------------------------------------------------------------------------
# Operational status
# ---------------------------------------------------------------------------
async def get_status(db: AsyncSession) -> Dict[str, Any]:
    """Record counts and the most recent writes, for the debug endpoint."""
    with store_errors("get_status"):
        count_result = await db.execute(
            text(
                "SELECT COUNT(*) AS total, COUNT(DISTINCT user_id) AS users "
                "FROM health_records"
            )
        )
        total_records, distinct_users = count_result.one()

        recent_result = await db.execute(
            text("""
                SELECT user_id, day, water_intake, updated_at
                FROM health_records
                ORDER BY updated_at DESC
                LIMIT 10
            """)
        )
        recent_writes = [
            {
                "user_id": row[0],
                "day": str(row[1]),
                "water_intake": row[2],
                "updated_at": str(row[3]) if row[3] else None,
            }
            for row in recent_result.fetchall()
        ]

    return {
        "total_records": total_records,
        "distinct_users": distinct_users,
        "last_write_at": recent_writes[0]["updated_at"] if recent_writes else None,
        "recent_writes": recent_writes,
    }
