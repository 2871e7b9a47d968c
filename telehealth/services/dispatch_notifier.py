from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional
import asyncio
import logging
import threading

from starlette.websockets import WebSocketState

from ..core.security import UserRole
from ..models.transport import EmergencyTransport

logger = logging.getLogger(__name__)

UNKNOWN_PATIENT = "Unknown Patient"
NEW_TRANSPORT_EVENT = "newEmergencyTransport"


@dataclass(eq=False)
class ClientConnection:
    """A live notification socket and the identity it declared."""

    websocket: Any
    user_id: Optional[str] = None
    role: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    @property
    def is_doctor(self) -> bool:
        return self.role == UserRole.DOCTOR.value


class ConnectionRegistry:
    """Thread-safe set of live notification connections."""

    def __init__(self):
        self._lock = threading.Lock()
        self._connections: List[ClientConnection] = []

    def add(self, connection: ClientConnection) -> ClientConnection:
        with self._lock:
            if connection not in self._connections:
                self._connections.append(connection)
        return connection

    def remove(self, connection: ClientConnection) -> None:
        with self._lock:
            if connection in self._connections:
                self._connections.remove(connection)

    def identify(self, connection: ClientConnection, user_id: Optional[str], role: Optional[str]) -> None:
        with self._lock:
            connection.user_id = user_id
            connection.role = role

    def snapshot(self) -> List[ClientConnection]:
        with self._lock:
            return list(self._connections)

    def doctors(self) -> List[ClientConnection]:
        return [c for c in self.snapshot() if c.is_doctor]

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)


def new_transport_event(
    transport: EmergencyTransport,
    patient_name: Optional[str],
    timestamp: Optional[datetime] = None
) -> Dict[str, Any]:
    return {
        "type": NEW_TRANSPORT_EVENT,
        "transportId": transport.id,
        "patientId": transport.patient_id,
        "patientName": patient_name or UNKNOWN_PATIENT,
        "location": transport.pickup_location,
        "urgency": getattr(transport.urgency, "value", transport.urgency),
        "reason": transport.reason,
        "timestamp": (timestamp or datetime.utcnow()).isoformat(),
    }


class DispatchNotifier:
    """Best-effort push of new transport requests to connected doctors.

    At most once, no acknowledgement, no retry and nothing stored for
    clients that connect later; those find new requests by polling the
    active transport list.
    """

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry

    async def notify_new_request(
        self,
        transport: EmergencyTransport,
        patient_name: Optional[str] = None
    ) -> int:
        """Send the event to every open doctor connection; returns deliveries."""
        recipients = [c for c in self.registry.doctors() if c.is_open]
        if not recipients:
            logger.info(
                f"No doctor connections open; transport {transport.id} "
                f"will be picked up by polling"
            )
            return 0

        event = new_transport_event(transport, patient_name)
        results = await asyncio.gather(
            *(self._deliver(connection, event) for connection in recipients)
        )
        delivered = sum(results)
        logger.info(f"Transport {transport.id} notification sent to {delivered} doctors")
        return delivered

    async def _deliver(self, connection: ClientConnection, event: Dict[str, Any]) -> bool:
        try:
            await connection.websocket.send_json(event)
            return True
        except Exception as exc:
            logger.warning(
                f"Dropping notification connection for user {connection.user_id}: {exc}"
            )
            self.registry.remove(connection)
            return False
