from datetime import datetime
from typing import Any, Dict, FrozenSet, Mapping, Union
import logging

from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..core.concurrency import RecordLocks
from ..core.config import settings
from ..core.errors import (
    FieldValidationError, InvalidTransitionError, NotFoundError, format_validation_errors
)
from ..models.transport import EmergencyTransport, TransportStatus
from ..schemas.transport import DriverAssignment, TransportUpdate
from .seed import build_demo_transport, sync_id_sequence
from .transport_store import TransportStore

logger = logging.getLogger(__name__)

S = TransportStatus

# target status -> statuses it may be reached from
ALLOWED_TRANSITIONS: Dict[TransportStatus, FrozenSet[TransportStatus]] = {
    S.ASSIGNED: frozenset({S.REQUESTED, S.ASSIGNED}),
    S.IN_PROGRESS: frozenset({S.ASSIGNED, S.IN_PROGRESS}),
    S.COMPLETED: frozenset({S.REQUESTED, S.ASSIGNED, S.IN_PROGRESS}),
    S.CANCELED: frozenset(TransportStatus),
}


def can_transition(current: TransportStatus, target: TransportStatus) -> bool:
    return S(current) in ALLOWED_TRANSITIONS.get(S(target), frozenset())


def ensure_transition(current: TransportStatus, target: TransportStatus) -> None:
    """Raise InvalidTransitionError unless ``current -> target`` is legal."""
    if not can_transition(current, target):
        raise InvalidTransitionError(S(current).value, S(target).value)


class TransportService:
    """Status transitions for emergency transports.

    The only writer of ``status``, ``driver_name``, ``driver_phone``,
    ``estimated_arrival`` and ``assigned_time``. Every operation holds the
    record's lock for its read-modify-write, so concurrent calls on one id
    resolve as last writer wins.

    Completed and canceled transports are final: ``assign``, ``start``,
    ``complete`` and ``update_descriptive`` on them raise
    InvalidTransitionError. ``cancel`` is accepted from any status.
    """

    def __init__(self, db: Session, locks: RecordLocks):
        self.db = db
        self.locks = locks
        self.store = TransportStore(db)

    def assign(
        self,
        transport_id: int,
        driver_name: str,
        driver_phone: str,
        estimated_arrival: datetime
    ) -> EmergencyTransport:
        """Assign (or re-assign) a driver and start the trip clock."""
        try:
            assignment = DriverAssignment(
                driver_name=driver_name,
                driver_phone=driver_phone,
                estimated_arrival=estimated_arrival,
            )
        except ValidationError as exc:
            raise FieldValidationError(
                format_validation_errors(exc.errors()),
                detail="Invalid driver assignment data"
            )

        with self.locks.hold(transport_id):
            transport = self.store.get_or_404(transport_id)
            ensure_transition(transport.status, S.ASSIGNED)

            transport.status = S.ASSIGNED
            transport.driver_name = assignment.driver_name
            transport.driver_phone = assignment.driver_phone
            transport.estimated_arrival = assignment.estimated_arrival
            transport.assigned_time = datetime.utcnow()
            transport = self.store.save(transport)

        logger.info(f"Driver {assignment.driver_name} assigned to emergency transport {transport_id}")
        return transport

    def start(self, transport_id: int) -> EmergencyTransport:
        return self._move(transport_id, S.IN_PROGRESS)

    def complete(self, transport_id: int) -> EmergencyTransport:
        return self._move(transport_id, S.COMPLETED)

    def cancel(self, transport_id: int) -> EmergencyTransport:
        """Cancel from any status.

        A seeded demo record that has gone missing from storage is rebuilt
        as a canceled record instead of raising NotFoundError, when
        ``CANCEL_RECONSTRUCTS_SEED_RECORDS`` is enabled.
        """
        with self.locks.hold(transport_id):
            transport = self.store.get_by_id(transport_id)
            if transport is None:
                return self._reconstruct_canceled(transport_id)

            transport.status = S.CANCELED
            transport = self.store.save(transport)

        logger.info(f"Emergency transport {transport_id} canceled")
        return transport

    def update_descriptive(
        self,
        transport_id: int,
        fields: Union[TransportUpdate, Mapping[str, Any]]
    ) -> EmergencyTransport:
        with self.locks.hold(transport_id):
            transport = self.store.get_or_404(transport_id)
            if S(transport.status).is_terminal:
                raise InvalidTransitionError(S(transport.status).value, "updated")
            return self.store.update(transport_id, fields)

    def _move(self, transport_id: int, target: TransportStatus) -> EmergencyTransport:
        with self.locks.hold(transport_id):
            transport = self.store.get_or_404(transport_id)
            ensure_transition(transport.status, target)
            transport.status = target
            transport = self.store.save(transport)

        logger.info(f"Emergency transport {transport_id} is now {target.value}")
        return transport

    def _reconstruct_canceled(self, transport_id: int) -> EmergencyTransport:
        if not settings.CANCEL_RECONSTRUCTS_SEED_RECORDS:
            raise NotFoundError()

        transport = build_demo_transport(transport_id, status=S.CANCELED)
        if transport is None:
            raise NotFoundError()

        logger.warning(
            f"Emergency transport {transport_id} missing from storage; "
            f"reconstructed from demo seed as canceled"
        )
        transport = self.store.insert(transport)
        sync_id_sequence(self.db, EmergencyTransport.__tablename__)
        return transport
