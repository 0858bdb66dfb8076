import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB

from healthlog.database import Base


class HealthRecord(Base):
    __tablename__ = "health_records"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String, nullable=False)
    # Local midnight of the observed calendar day
    day = Column(DateTime, nullable=False)

    water_intake = Column(Float, nullable=False)
    bathroom_visits = Column(Integer, nullable=False, default=0)
    stress_level = Column(Integer, nullable=False, default=1)
    # "light-yellow" | "yellow" | "dark-yellow" | "reddish"
    urine_color = Column(String, nullable=False)
    dialysis_performed = Column(Boolean, nullable=False, default=False)

    systolic = Column(Integer, nullable=True)
    diastolic = Column(Integer, nullable=True)
    weight = Column(Float, nullable=True)
    medications = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "day",
            name="uq_health_records_user_day",
        ),
    )


class PatientProfile(Base):
    __tablename__ = "patient_profiles"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String, nullable=False)

    age = Column(Integer, nullable=True)
    # "male" | "female" | "other"
    gender = Column(String, nullable=True)
    disease_start_date = Column(Date, nullable=True)
    height = Column(Float, nullable=True)  # cm
    weight = Column(Float, nullable=True)  # kg

    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("user_id", name="uq_patient_profiles_user"),
    )
