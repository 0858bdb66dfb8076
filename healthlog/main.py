import logging
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from healthlog import store
from healthlog.config import settings
from healthlog.database import Base, engine, get_db
from healthlog.errors import HealthLogError, RecordNotFoundError
from healthlog.models import HealthRecord, PatientProfile
from healthlog.schemas import (
    BloodPressureSchema,
    DebugStatusResponse,
    HealthDataSubmission,
    HealthRecordResponse,
    PatientProfileResponse,
    PatientProfileUpdate,
    SummaryResponse,
)
from healthlog.summary import SummaryWindow, resolve_window, summarize_window

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger("healthlog")

# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(title="Daily Health Log")


# ---------------------------------------------------------------------------
# Error rendering: every failure is {"message": ...}
# ---------------------------------------------------------------------------
@app.exception_handler(HealthLogError)
async def health_log_error_handler(request: Request, exc: HealthLogError):
    logger.warning(
        "%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message
    )
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = "invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST, content={"message": message}
    )


# ---------------------------------------------------------------------------
# Auth / identity dependencies
# ---------------------------------------------------------------------------
async def verify_api_key(x_api_key: Optional[str] = Header(default=None)):
    if x_api_key != settings.API_KEY:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API Key",
        )
    return x_api_key


async def current_user_id(
    x_user_id: Optional[str] = Header(default=None),
    _: str = Depends(verify_api_key),
) -> str:
    """Caller identity, resolved upstream by the identity provider."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing user identity",
        )
    return x_user_id


def get_now() -> datetime:
    return datetime.now()


def _record_to_response(record: HealthRecord) -> HealthRecordResponse:
    """Convert a stored row to its wire shape."""
    blood_pressure = None
    if record.systolic is not None or record.diastolic is not None:
        blood_pressure = BloodPressureSchema(
            systolic=record.systolic, diastolic=record.diastolic
        )

    return HealthRecordResponse(
        id=record.id,
        user_id=record.user_id,
        day=record.day,
        water_intake=record.water_intake,
        bathroom_visits=record.bathroom_visits,
        stress_level=record.stress_level,
        urine_color=record.urine_color,
        dialysis_performed=record.dialysis_performed,
        blood_pressure=blood_pressure,
        weight=record.weight,
        medications=record.medications or [],
        notes=record.notes,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _profile_to_response(
    user_id: str, profile: Optional[PatientProfile]
) -> PatientProfileResponse:
    if profile is None:
        return PatientProfileResponse(user_id=user_id)
    return PatientProfileResponse(
        user_id=profile.user_id,
        age=profile.age,
        gender=profile.gender,
        disease_start_date=profile.disease_start_date,
        height=profile.height,
        weight=profile.weight,
        updated_at=profile.updated_at,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@app.get("/health")
async def health(db: AsyncSession = Depends(get_db)):
    with store.store_errors("health"):
        await db.execute(text("SELECT 1"))
    return {"status": "ok"}


@app.get("/debug/status", response_model=DebugStatusResponse)
async def debug_status(
    db: AsyncSession = Depends(get_db),
    _: str = Depends(verify_api_key),
):
    """Record counts and the most recent writes."""
    return DebugStatusResponse(**await store.get_status(db))


@app.post(
    "/health-data",
    response_model=HealthRecordResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_health_data(
    payload: HealthDataSubmission,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(current_user_id),
):
    """Create today's record for the caller, or merge into the existing one."""
    record = await store.upsert(db, user_id, payload)
    return _record_to_response(record)


@app.get("/health-data/daily/{date}", response_model=HealthRecordResponse)
async def get_daily_health_data(
    date: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(current_user_id),
):
    record = await store.get_by_day(db, user_id, date)
    if record is None:
        raise RecordNotFoundError("no data for this day")
    return _record_to_response(record)


@app.get("/health-data/range", response_model=List[HealthRecordResponse])
async def get_health_data_range(
    start_date: str = Query(..., alias="startDate"),
    end_date: str = Query(..., alias="endDate"),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(current_user_id),
):
    records = await store.get_by_range(db, user_id, start_date, end_date)
    return [_record_to_response(r) for r in records]


@app.get("/health-data/summary", response_model=SummaryResponse)
async def get_health_data_summary(
    period: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(current_user_id),
    now: datetime = Depends(get_now),
):
    """Averages, urine color distribution and counts for the period ending today."""
    start_day, end_day = resolve_window(period, now)
    records = await store.get_by_range(db, user_id, start_day, end_day)
    return summarize_window(SummaryWindow(period, start_day, end_day, records))


@app.get("/profile", response_model=PatientProfileResponse)
async def get_profile(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(current_user_id),
):
    """The caller's profile; every field is null until one is saved."""
    profile = await store.get_profile(db, user_id)
    return _profile_to_response(user_id, profile)


@app.put("/profile", response_model=PatientProfileResponse)
async def update_profile(
    payload: PatientProfileUpdate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(current_user_id),
):
    profile = await store.update_profile(db, user_id, payload)
    return _profile_to_response(user_id, profile)


# ---------------------------------------------------------------------------
# Startup — create tables (dev only; use Alembic in prod)
# ---------------------------------------------------------------------------
@app.on_event("startup")
async def startup():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("healthlog.main:app", host="0.0.0.0", port=8000)
