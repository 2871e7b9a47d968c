import os

# Must be set before the application is imported
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test.db"
os.environ["SEED_DEMO_DATA"] = "false"

import pytest
from fastapi.testclient import TestClient

from telehealth.main import app
from telehealth.core.concurrency import RecordLocks
from telehealth.core.database import Base, SessionLocal, engine, redis_client
from telehealth.models.patient import Patient
from telehealth.services.dispatch_notifier import ConnectionRegistry

PICKUP = "37.7749,-122.4194"
DESTINATION = "37.7833,-122.4167"


@pytest.fixture(scope="function")
def test_db():
    # Create tables
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(test_db):
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def fresh_app_state():
    redis_client.flushdb()
    app.state.connections = ConnectionRegistry()
    app.state.record_locks = RecordLocks()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client(test_db):
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client


@pytest.fixture
def patient(db_session):
    patient = Patient(first_name="Sarah", last_name="Johnson", phone_number="555-0101")
    db_session.add(patient)
    db_session.commit()
    db_session.refresh(patient)
    return patient


@pytest.fixture
def transport_data(patient):
    return {
        "patientId": patient.id,
        "pickupLocation": "123 Rural Road, Remote Village, 98765",
        "pickupCoordinates": PICKUP,
        "destination": "County General Hospital",
        "destinationCoordinates": DESTINATION,
        "reason": "Severe chest pain and difficulty breathing",
        "urgency": "high",
        "vehicleType": "ambulance",
        "notes": "Patient has history of heart problems",
        "assignedHospital": "County General Hospital",
    }
