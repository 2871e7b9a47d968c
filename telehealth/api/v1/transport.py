from fastapi import APIRouter, BackgroundTasks, Depends, status
from datetime import datetime
from typing import List, Optional

from ...api.deps import (
    get_current_time, get_dispatch_notifier, get_jitter_source,
    get_transport_service, get_transport_store, rate_limit_check
)
from ...core.config import settings
from ...models.patient import Patient
from ...models.transport import EmergencyTransport
from ...schemas.transport import (
    DriverAssignment, LocationResponse, PatientSummary,
    TransportCreate, TransportResponse, TransportUpdate
)
from ...services.dispatch_notifier import DispatchNotifier
from ...services.location_simulator import JitterSource, location_at
from ...services.transport_service import TransportService
from ...services.transport_store import TransportStore

# Mounted under each of TRANSPORT_PREFIXES by the application
router = APIRouter(tags=["Emergency Transport"])

TRANSPORT_PREFIXES = ("/emergency-transport", "/transport")


def _serialize(transport: EmergencyTransport, patient: Optional[Patient]) -> TransportResponse:
    response = TransportResponse.model_validate(transport)
    if patient is not None:
        response.patient = PatientSummary.model_validate(patient)
    return response


def _serialize_many(store: TransportStore, transports: List[EmergencyTransport]) -> List[TransportResponse]:
    patients = store.get_patients({t.patient_id for t in transports})
    return [_serialize(t, patients.get(t.patient_id)) for t in transports]


@router.get("", response_model=List[TransportResponse])
async def list_active_transports(
    store: TransportStore = Depends(get_transport_store)
):
    """All requested, assigned and in-progress transports."""
    return _serialize_many(store, store.list_active())

@router.post("", response_model=TransportResponse, status_code=status.HTTP_201_CREATED)
async def create_transport(
    transport_data: TransportCreate,
    background_tasks: BackgroundTasks,
    store: TransportStore = Depends(get_transport_store),
    notifier: DispatchNotifier = Depends(get_dispatch_notifier),
    _: None = Depends(rate_limit_check)
):
    """Request emergency transport and notify connected doctors."""
    transport = store.create(transport_data)
    patient = store.get_patient(transport.patient_id)

    # Delivered after the response is sent; failures never reach the client
    background_tasks.add_task(
        notifier.notify_new_request,
        transport,
        patient.display_name if patient else None
    )

    return _serialize(transport, patient)

@router.get("/patient/{patient_id}", response_model=List[TransportResponse])
async def list_patient_transports(
    patient_id: int,
    store: TransportStore = Depends(get_transport_store)
):
    """All transports for a patient, in any status."""
    return _serialize_many(store, store.list_by_patient(patient_id))

@router.get("/{transport_id}", response_model=TransportResponse)
async def get_transport(
    transport_id: int,
    store: TransportStore = Depends(get_transport_store)
):
    transport = store.get_or_404(transport_id)
    return _serialize(transport, store.get_patient(transport.patient_id))

@router.patch("/{transport_id}/assign", response_model=TransportResponse)
async def assign_driver(
    transport_id: int,
    assignment: DriverAssignment,
    service: TransportService = Depends(get_transport_service)
):
    """Assign or re-assign a driver to a transport."""
    transport = service.assign(
        transport_id,
        assignment.driver_name,
        assignment.driver_phone,
        assignment.estimated_arrival
    )
    return _serialize(transport, service.store.get_patient(transport.patient_id))

@router.patch("/{transport_id}/start", response_model=TransportResponse)
async def start_transport(
    transport_id: int,
    service: TransportService = Depends(get_transport_service)
):
    """Mark the patient as on board and the vehicle en route."""
    transport = service.start(transport_id)
    return _serialize(transport, service.store.get_patient(transport.patient_id))

@router.patch("/{transport_id}/complete", response_model=TransportResponse)
async def complete_transport(
    transport_id: int,
    service: TransportService = Depends(get_transport_service)
):
    transport = service.complete(transport_id)
    return _serialize(transport, service.store.get_patient(transport.patient_id))

@router.patch("/{transport_id}/cancel", response_model=TransportResponse)
async def cancel_transport(
    transport_id: int,
    service: TransportService = Depends(get_transport_service)
):
    transport = service.cancel(transport_id)
    return _serialize(transport, service.store.get_patient(transport.patient_id))

@router.patch("/{transport_id}", response_model=TransportResponse)
async def update_transport(
    transport_id: int,
    update_data: TransportUpdate,
    service: TransportService = Depends(get_transport_service)
):
    """Update descriptive fields of an active transport."""
    transport = service.update_descriptive(transport_id, update_data)
    return _serialize(transport, service.store.get_patient(transport.patient_id))

@router.get("/{transport_id}/location", response_model=LocationResponse)
async def get_transport_location(
    transport_id: int,
    store: TransportStore = Depends(get_transport_store),
    now: datetime = Depends(get_current_time),
    rng: JitterSource = Depends(get_jitter_source)
):
    """Simulated current position of the transport vehicle."""
    transport = store.get_or_404(transport_id)
    return location_at(transport, now, rng, settings.TRIP_DURATION_MINUTES)
