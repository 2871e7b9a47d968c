from sqlalchemy import Column, Integer, String, DateTime, Text, Enum as SQLEnum
from sqlalchemy.sql import func
import enum

from ..core.database import Base

class TransportStatus(str, enum.Enum):
    REQUESTED = "requested"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

class Urgency(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

class VehicleType(str, enum.Enum):
    AMBULANCE = "ambulance"
    WHEELCHAIR_VAN = "wheelchair_van"
    MEDICAL_CAR = "medical_car"
    HELICOPTER = "helicopter"

ACTIVE_STATUSES = (
    TransportStatus.REQUESTED,
    TransportStatus.ASSIGNED,
    TransportStatus.IN_PROGRESS,
)
TERMINAL_STATUSES = (TransportStatus.COMPLETED, TransportStatus.CANCELED)

# Fields a client may change after creation
DESCRIPTIVE_FIELDS = (
    "pickup_location",
    "pickup_coordinates",
    "destination",
    "destination_coordinates",
    "reason",
    "urgency",
    "vehicle_type",
    "notes",
    "assigned_hospital",
)

def _enum_values(enum_cls):
    return [member.value for member in enum_cls]

class EmergencyTransport(Base):
    __tablename__ = "emergency_transports"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, nullable=False, index=True)
    request_date = Column(DateTime, nullable=False)

    # Route
    pickup_location = Column(String(255), nullable=False)
    pickup_coordinates = Column(String(64), nullable=True)
    destination = Column(String(255), nullable=False)
    destination_coordinates = Column(String(64), nullable=True)

    # Request details
    reason = Column(Text, nullable=False)
    urgency = Column(SQLEnum(Urgency, values_callable=_enum_values), nullable=False)
    vehicle_type = Column(SQLEnum(VehicleType, values_callable=_enum_values), nullable=False)
    notes = Column(Text, nullable=True)
    assigned_hospital = Column(String(255), nullable=True)

    # Lifecycle
    status = Column(
        SQLEnum(TransportStatus, values_callable=_enum_values),
        nullable=False,
        default=TransportStatus.REQUESTED,
        index=True,
    )
    driver_name = Column(String(100), nullable=True)
    driver_phone = Column(String(30), nullable=True)
    estimated_arrival = Column(DateTime, nullable=True)
    assigned_time = Column(DateTime, nullable=True)

    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def __repr__(self):
        return f"<EmergencyTransport(id={self.id}, patient_id={self.patient_id}, status='{self.status}')>"
