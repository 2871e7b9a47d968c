from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union
import logging

from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..core.errors import FieldValidationError, NotFoundError, format_validation_errors
from ..models.patient import Patient
from ..models.transport import (
    ACTIVE_STATUSES, DESCRIPTIVE_FIELDS, EmergencyTransport, TransportStatus
)
from ..schemas.transport import TransportCreate, TransportUpdate

logger = logging.getLogger(__name__)


class TransportStore:
    """Persistence for emergency transport records, keyed by integer id."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, draft: Union[TransportCreate, Mapping[str, Any]]) -> EmergencyTransport:
        """Store a new request in the ``requested`` state."""
        if not isinstance(draft, TransportCreate):
            try:
                draft = TransportCreate.model_validate(dict(draft))
            except ValidationError as exc:
                raise FieldValidationError(format_validation_errors(exc.errors()))

        transport = EmergencyTransport(
            **draft.model_dump(),
            request_date=datetime.utcnow(),
            status=TransportStatus.REQUESTED,
            driver_name=None,
            driver_phone=None,
            estimated_arrival=None,
            assigned_time=None,
        )

        self.db.add(transport)
        self.db.commit()
        self.db.refresh(transport)

        logger.info(
            f"Emergency transport {transport.id} requested for patient {transport.patient_id} "
            f"(urgency={transport.urgency.value})"
        )
        return transport

    def insert(self, transport: EmergencyTransport) -> EmergencyTransport:
        """Persist a fully-formed record as is."""
        self.db.add(transport)
        self.db.commit()
        self.db.refresh(transport)
        return transport

    def get_by_id(self, transport_id: int) -> Optional[EmergencyTransport]:
        return self.db.query(EmergencyTransport).filter(
            EmergencyTransport.id == transport_id
        ).first()

    def get_or_404(self, transport_id: int) -> EmergencyTransport:
        transport = self.get_by_id(transport_id)
        if not transport:
            raise NotFoundError()
        return transport

    def list_by_patient(self, patient_id: int) -> List[EmergencyTransport]:
        return self.db.query(EmergencyTransport).filter(
            EmergencyTransport.patient_id == patient_id
        ).order_by(EmergencyTransport.id).all()

    def list_active(self) -> List[EmergencyTransport]:
        """Requests still in progress, read fresh from the database."""
        return self.db.query(EmergencyTransport).filter(
            EmergencyTransport.status.in_(ACTIVE_STATUSES)
        ).order_by(EmergencyTransport.id).all()

    def update(
        self,
        transport_id: int,
        fields: Union[TransportUpdate, Mapping[str, Any]]
    ) -> EmergencyTransport:
        """Merge descriptive fields into a record; anything else is ignored."""
        if not isinstance(fields, TransportUpdate):
            try:
                fields = TransportUpdate.model_validate(dict(fields))
            except ValidationError as exc:
                raise FieldValidationError(
                    format_validation_errors(exc.errors()),
                    detail="Invalid emergency transport update data"
                )

        transport = self.get_or_404(transport_id)

        changes = fields.model_dump(exclude_unset=True)
        for name, value in changes.items():
            if name in DESCRIPTIVE_FIELDS:
                setattr(transport, name, value)

        self.db.commit()
        self.db.refresh(transport)
        return transport

    def save(self, transport: EmergencyTransport) -> EmergencyTransport:
        """Commit changes made to a loaded record."""
        self.db.commit()
        self.db.refresh(transport)
        return transport

    def get_patient(self, patient_id: int) -> Optional[Patient]:
        return self.db.query(Patient).filter(Patient.id == patient_id).first()

    def get_patients(self, patient_ids: Iterable[int]) -> Dict[int, Patient]:
        patient_ids = set(patient_ids)
        if not patient_ids:
            return {}
        patients = self.db.query(Patient).filter(Patient.id.in_(patient_ids)).all()
        return {patient.id: patient for patient in patients}
