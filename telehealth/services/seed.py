from datetime import datetime
from typing import Any, Dict, Optional
import logging

from sqlalchemy import text
from sqlalchemy.orm import Session

from ..models.patient import Patient
from ..models.transport import (
    EmergencyTransport, TransportStatus, Urgency, VehicleType
)

logger = logging.getLogger(__name__)

DEMO_PATIENTS = [
    {"id": 1, "first_name": "Sarah", "last_name": "Johnson", "phone_number": "555-0101", "city": "Remote Village"},
    {"id": 2, "first_name": "Michael", "last_name": "Chen", "phone_number": "555-0102", "city": "Springfield"},
    {"id": 3, "first_name": "Elena", "last_name": "Rodriguez", "phone_number": "555-0103", "city": "Riverside"},
]

# Seeded transports are stored under these exact ids.
DEMO_TRANSPORTS: Dict[int, Dict[str, Any]] = {
    1: {
        "patient_id": 1,
        "pickup_location": "123 Rural Road, Remote Village, 98765",
        "pickup_coordinates": "37.7749,-122.4194",
        "destination": "County General Hospital",
        "destination_coordinates": "37.7833,-122.4167",
        "reason": "Severe chest pain and difficulty breathing",
        "urgency": Urgency.HIGH,
        "vehicle_type": VehicleType.AMBULANCE,
        "notes": "Patient has history of heart problems",
        "assigned_hospital": "County General Hospital",
    },
}


def demo_transport_template(transport_id: int) -> Optional[Dict[str, Any]]:
    template = DEMO_TRANSPORTS.get(transport_id)
    return dict(template) if template else None


def build_demo_transport(
    transport_id: int,
    status: TransportStatus = TransportStatus.REQUESTED
) -> Optional[EmergencyTransport]:
    """Fresh, unassigned record for a seeded id, or None if the id was never seeded."""
    template = demo_transport_template(transport_id)
    if template is None:
        return None
    return EmergencyTransport(
        id=transport_id,
        request_date=datetime.utcnow(),
        status=status,
        driver_name=None,
        driver_phone=None,
        estimated_arrival=None,
        assigned_time=None,
        **template,
    )


def sync_id_sequence(db: Session, table: str) -> None:
    """Move a PostgreSQL serial past explicitly inserted ids."""
    if db.get_bind().dialect.name != "postgresql":
        return
    db.execute(text(
        f"SELECT setval(pg_get_serial_sequence('{table}', 'id'), "
        f"(SELECT COALESCE(MAX(id), 1) FROM {table}))"
    ))
    db.commit()


def seed_demo_data(db: Session) -> bool:
    """Seed demo patients and transports into an empty database."""
    if db.query(EmergencyTransport).first() is not None:
        logger.info("Transport table not empty; skipping demo seed")
        return False

    for data in DEMO_PATIENTS:
        if db.get(Patient, data["id"]) is None:
            db.add(Patient(**data))

    for transport_id in DEMO_TRANSPORTS:
        db.add(build_demo_transport(transport_id))

    db.commit()
    sync_id_sequence(db, Patient.__tablename__)
    sync_id_sequence(db, EmergencyTransport.__tablename__)

    logger.info(
        f"Seeded {len(DEMO_PATIENTS)} demo patients and {len(DEMO_TRANSPORTS)} demo transports"
    )
    return True
