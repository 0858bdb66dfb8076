from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from healthlog.days import parse_day
from healthlog.errors import RecordValidationError


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, allow_inf_nan=False
    )


class UrineColor(str, Enum):
    LIGHT_YELLOW = "light-yellow"
    YELLOW = "yellow"
    DARK_YELLOW = "dark-yellow"
    REDDISH = "reddish"


URINE_COLOR_LABELS = [c.value for c in UrineColor]


class BloodPressureSchema(CamelModel):
    systolic: Optional[int] = Field(default=None, gt=0, le=400)
    diastolic: Optional[int] = Field(default=None, gt=0, le=400)

    def is_empty(self) -> bool:
        return self.systolic is None and self.diastolic is None


class MedicationSchema(CamelModel):
    name: Optional[str] = None
    dosage: Optional[str] = None
    taken: bool = False


class HealthDataSubmission(CamelModel):
    """A day's observation as submitted by the patient.

    ``None`` means "not supplied". Which supplied fields actually overwrite an
    existing record is decided by the store's merge rules.
    """

    date: datetime
    water_intake: Optional[float] = Field(default=None, ge=0)
    bathroom_visits: Optional[int] = Field(default=None, ge=0, le=1000)
    stress_level: Optional[int] = Field(default=None, ge=1, le=10)
    urine_color: Optional[UrineColor] = None
    dialysis: Optional[bool] = None
    blood_pressure: Optional[BloodPressureSchema] = None
    weight: Optional[float] = Field(default=None, ge=0)
    medications: Optional[List[MedicationSchema]] = None
    notes: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def validate_date(cls, v):
        try:
            return parse_day(v)
        except RecordValidationError as exc:
            raise ValueError(str(exc)) from exc


class HealthRecordResponse(CamelModel):
    id: UUID
    user_id: str
    day: datetime
    water_intake: float
    bathroom_visits: int
    stress_level: int
    urine_color: str
    dialysis_performed: bool
    blood_pressure: Optional[BloodPressureSchema] = None
    weight: Optional[float] = None
    medications: List[MedicationSchema] = []
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BloodPressureAverage(CamelModel):
    systolic_avg: float = 0
    diastolic_avg: float = 0


class SummaryResponse(CamelModel):
    water_intake_avg: float = 0
    bathroom_visits_avg: float = 0
    stress_level_avg: float = 0
    urine_color_distribution: Dict[str, int]
    dialysis_count: int = 0
    blood_pressure_avg: BloodPressureAverage
    records_count: int = 0
    period_label: Optional[str] = None
    start_day: datetime
    end_day: datetime


class RecentRecord(CamelModel):
    user_id: str
    day: str
    water_intake: float
    updated_at: Optional[str] = None


class DebugStatusResponse(CamelModel):
    status: str = "ok"
    total_records: int
    distinct_users: int
    last_write_at: Optional[str] = None
    recent_writes: List[RecentRecord]


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class PatientProfileUpdate(CamelModel):
    """Profile fields to change. Every supplied field overwrites, null included."""

    age: Optional[int] = Field(default=None, ge=0, le=150)
    gender: Optional[Gender] = None
    disease_start_date: Optional[date] = None
    height: Optional[float] = Field(default=None, gt=0, le=300)
    weight: Optional[float] = Field(default=None, ge=0, le=1000)


class PatientProfileResponse(CamelModel):
    user_id: str
    age: Optional[int] = None
    gender: Optional[str] = None
    disease_start_date: Optional[date] = None
    height: Optional[float] = None
    weight: Optional[float] = None
    updated_at: Optional[datetime] = None
