from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..models.transport import TransportStatus, Urgency, VehicleType


class CamelModel(BaseModel):
    """Snake-case attributes, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        str_strip_whitespace=True,
    )


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class TransportCreate(CamelModel):
    patient_id: int
    pickup_location: str = Field(..., min_length=1, max_length=255)
    pickup_coordinates: Optional[str] = Field(None, max_length=64)
    destination: str = Field(..., min_length=1, max_length=255)
    destination_coordinates: Optional[str] = Field(None, max_length=64)
    reason: str = Field(..., min_length=1)
    urgency: Urgency
    vehicle_type: VehicleType
    notes: Optional[str] = None
    assigned_hospital: Optional[str] = Field(None, max_length=255)


class TransportUpdate(CamelModel):
    """Descriptive fields only; status and driver fields are not accepted."""

    pickup_location: Optional[str] = Field(None, min_length=1, max_length=255)
    pickup_coordinates: Optional[str] = Field(None, max_length=64)
    destination: Optional[str] = Field(None, min_length=1, max_length=255)
    destination_coordinates: Optional[str] = Field(None, max_length=64)
    reason: Optional[str] = Field(None, min_length=1)
    urgency: Optional[Urgency] = None
    vehicle_type: Optional[VehicleType] = None
    notes: Optional[str] = None
    assigned_hospital: Optional[str] = Field(None, max_length=255)

    @field_validator("pickup_location", "destination", "reason", "urgency", "vehicle_type")
    @classmethod
    def required_fields_not_null(cls, value):
        if value is None:
            raise ValueError("Field cannot be null")
        return value


class DriverAssignment(CamelModel):
    driver_name: str = Field(..., min_length=1, max_length=100)
    driver_phone: str = Field(..., min_length=1, max_length=30)
    estimated_arrival: datetime

    @field_validator("estimated_arrival")
    @classmethod
    def normalize_timezone(cls, value: datetime) -> datetime:
        return _to_naive_utc(value)


class PatientSummary(CamelModel):
    id: int
    first_name: str
    last_name: str
    display_name: str


class TransportResponse(CamelModel):
    id: int
    patient_id: int
    request_date: datetime
    pickup_location: str
    pickup_coordinates: Optional[str] = None
    destination: str
    destination_coordinates: Optional[str] = None
    reason: str
    urgency: Urgency
    vehicle_type: VehicleType
    notes: Optional[str] = None
    assigned_hospital: Optional[str] = None
    status: TransportStatus
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    estimated_arrival: Optional[datetime] = None
    assigned_time: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    patient: Optional[PatientSummary] = None


class Coordinates(BaseModel):
    lat: float
    lng: float


class LocationResponse(CamelModel):
    location: Coordinates
    status: TransportStatus
    progress: int = Field(..., ge=0, le=100)
    estimated_arrival: Optional[datetime] = None
