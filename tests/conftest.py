# tests/conftest.py
import os

# Settings are read at import time, so the environment is prepared first.
os.environ["SQLALCHEMY_DATABASE_URL"] = "sqlite://"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "1"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["SMTP_HOST"] = ""
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "rzp_test_secret"

import pytest
from fastapi.testclient import TestClient
from labdesk.auth import crud
from labdesk.db import models
from labdesk.db.session import SessionLocal, engine
from labdesk.main import app
from labdesk.utils.jwt_utils import issue_access_token


@pytest.fixture(autouse=True)
def setup_database():
    models.Base.metadata.create_all(bind=engine)
    yield
    models.Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def client():
    return TestClient(app)


def _bearer(subject_id, subject_type):
    return {"Authorization": f"Bearer {issue_access_token(subject_id, subject_type)}"}


@pytest.fixture
def admin(db):
    return crud.create_admin(db, "admin", "secret123", name="Lab Admin")


@pytest.fixture
def admin_headers(admin):
    return _bearer(admin.id, "admin")


@pytest.fixture
def patient(db):
    return crud.create_patient(db, "Asha Verma", "9000000001", email="asha@example.com", password="secret123")


@pytest.fixture
def patient_headers(patient):
    return _bearer(patient.id, "patient")


@pytest.fixture
def lab_tests(db):
    cbc = models.LabTest(
        name="Complete Blood Count",
        code="CBC",
        category="Hematology",
        price=350,
        duration="24 hours",
        parameters=[{"name": "Hemoglobin", "unit": "g/dL", "normal_range": "13-17", "param_code": "HB"}],
    )
    lipid = models.LabTest(
        name="Lipid Profile",
        code="LIPID",
        category="Biochemistry",
        price=600,
        duration="24 hours",
        parameters=[{"name": "Cholesterol", "unit": "mg/dL", "normal_range": "<200", "param_code": "CHOL"}],
    )
    db.add_all([cbc, lipid])
    db.commit()
    db.refresh(cbc)
    db.refresh(lipid)
    return cbc, lipid


@pytest.fixture
def book(client):
    """
    Creates a booking through the API and returns its JSON.
    """
    def _book(test_ids, headers=None, payment_method="upi", **fields):
        payload = {
            "phone": "9000000001",
            "test_ids": list(test_ids),
            "type": "lab_visit",
            "slot": "2026-11-02T09:30:00",
            "payment_method": payment_method,
            "amount_paid": 950,
        }
        payload.update(fields)
        response = client.post("/api/bookings", json=payload, headers=headers or {})
        assert response.status_code == 200, response.text
        return response.json()
    return _book


def report_entry(value="14.2", finalize=False, **fields):
    entry = {
        "technician": "R. Singh",
        "parameter_results": [
            {"parameter_name": "Hemoglobin", "value": value, "unit": "g/dL", "normal_range": "13-17"},
        ],
        "finalize": finalize,
    }
    entry.update(fields)
    return entry


@pytest.fixture
def entry():
    return report_entry
