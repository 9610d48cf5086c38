# labdesk/admin/routes.py
import logging
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session
from labdesk.admin import schemas
from labdesk.auth import crud as auth_crud
from labdesk.auth.routes import get_current_admin
from labdesk.auth.schemas import PatientOut
from labdesk.bookings import crud as booking_crud
from labdesk.bookings.schemas import BookingOut, StatusUpdate
from labdesk.catalog.schemas import HealthPackageOut, TestCreate, TestOut
from labdesk.db.models import (
    Booking, BookingStatus, LabTest, Patient, PaymentStatus, Report, Result, TestStatus,
)
from labdesk.db.session import get_db
from labdesk.notifications.dispatch import enqueue
from labdesk.reports import lifecycle
from labdesk.reports.schemas import DirectReportCreate, ReportOut, ResultOut, TestReportEntry
from celery_worker import notify_payment_verified_task, notify_sample_collected_task

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(get_current_admin)])

EARLY_BOOKING_STATUSES = (BookingStatus.pending, BookingStatus.collected, BookingStatus.processing)
COMPLETE_BOOKING_STATUSES = (BookingStatus.report_ready, BookingStatus.delivered)


def _get_booking(db: Session, booking_id: str) -> Booking:
    booking = db.get(Booking, booking_id)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    return booking


def _report_with_details(report: Report) -> dict:
    result = report.result
    return {
        **ReportOut.model_validate(report).model_dump(),
        "patient": PatientOut.model_validate(report.patient) if report.patient else None,
        "result": ResultOut.model_validate(result) if result else None,
        "test": TestOut.model_validate(result.test) if result and result.test else None,
    }


def report_outcome(outcome: lifecycle.ReportOutcome) -> dict:
    return {
        "report": ReportOut.model_validate(outcome.report),
        "result": ResultOut.model_validate(outcome.result),
        "all_completed": outcome.all_completed,
        "download_url": outcome.download_url,
    }


# ============================
# Bookings
# ============================

@router.get("/bookings")
def list_bookings(db: Session = Depends(get_db)):
    bookings = db.query(Booking).order_by(Booking.created_at.desc()).all()
    return [
        {
            **BookingOut.model_validate(booking).model_dump(),
            "patient": PatientOut.model_validate(booking.patient) if booking.patient else None,
            "tests": [TestOut.model_validate(t) for t in booking_crud.tests_for(db, booking.test_ids)],
        }
        for booking in bookings
    ]


@router.patch("/bookings/{booking_id}/status", response_model=BookingOut)
def update_booking_status(booking_id: str, body: StatusUpdate, db: Session = Depends(get_db)):
    """
    Moves a booking along pending -> collected -> processing -> report_ready -> delivered.
    report_ready and delivered are only reachable once every test is finalized.
    """
    booking = _get_booking(db, booking_id)
    previous = booking.status
    if body.status in COMPLETE_BOOKING_STATUSES and not lifecycle.all_finalized(booking):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"All tests must be finalized before the booking is {body.status.value}"
        )
    if previous in COMPLETE_BOOKING_STATUSES and body.status in EARLY_BOOKING_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Booking reports are already complete")

    booking.status = body.status
    db.commit()
    db.refresh(booking)
    if body.status == BookingStatus.collected and previous != BookingStatus.collected:
        enqueue(notify_sample_collected_task, booking.id)
    return booking


@router.patch("/bookings/{booking_id}/verify-payment", response_model=BookingOut)
def verify_booking_payment(booking_id: str, admin: dict = Depends(get_current_admin), db: Session = Depends(get_db)):
    booking = _get_booking(db, booking_id)
    if booking.payment_status != PaymentStatus.paid_unverified:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Payment is not pending verification")
    booking.payment_status = PaymentStatus.verified
    booking.payment_verified_at = datetime.utcnow()
    booking.payment_verified_by = admin.get("sub")
    db.commit()
    db.refresh(booking)
    logger.info("Payment for booking %s verified by %s", booking.id, admin.get("sub"))
    enqueue(notify_payment_verified_task, booking.id)
    return booking


@router.get("/bookings/{booking_id}/report-details")
def booking_report_details(booking_id: str, db: Session = Depends(get_db)):
    booking = _get_booking(db, booking_id)
    tracker = {row.test_id: row for row in booking.test_report_status}
    tests = []
    for test in booking_crud.tests_for(db, booking.test_ids):
        row = tracker.get(test.id)
        tests.append({
            **TestOut.model_validate(test).model_dump(),
            "report_status": row.status.value if row else TestStatus.pending.value,
            "result_id": row.result_id if row else None,
            "report_id": row.report_id if row else None,
            "entered_at": row.entered_at if row else None,
            "finalized_at": row.finalized_at if row else None,
        })
    completed = sum(1 for t in tests if t["report_status"] == TestStatus.finalized.value)
    entered = sum(1 for t in tests if t["report_status"] == TestStatus.entered.value)
    return {
        "booking": BookingOut.model_validate(booking),
        "patient": PatientOut.model_validate(booking.patient) if booking.patient else None,
        "health_package": HealthPackageOut.model_validate(booking.health_package) if booking.health_package else None,
        "tests": tests,
        "progress": {
            "total": len(tests),
            "completed": completed,
            "entered": entered,
            "pending": len(tests) - completed - entered,
        },
    }


@router.post("/bookings/{booking_id}/tests/{test_id}/report")
def save_booking_test_report(booking_id: str, test_id: str, body: TestReportEntry, db: Session = Depends(get_db)):
    booking = _get_booking(db, booking_id)
    outcome = lifecycle.save_test_report(db, booking, test_id, body)
    return {**report_outcome(outcome), "booking": BookingOut.model_validate(outcome.parent)}


@router.patch("/bookings/{booking_id}/tests/{test_id}/finalize")
def finalize_booking_test_report(booking_id: str, test_id: str, db: Session = Depends(get_db)):
    booking = _get_booking(db, booking_id)
    outcome = lifecycle.finalize_test_report(db, booking, test_id)
    return {**report_outcome(outcome), "booking": BookingOut.model_validate(outcome.parent)}


# ============================
# Reports
# ============================

@router.get("/reports")
def list_reports(db: Session = Depends(get_db)):
    reports = db.query(Report).order_by(Report.generated_at.desc()).all()
    return [_report_with_details(report) for report in reports]


@router.post("/reports/generate")
def generate_report(body: DirectReportCreate, db: Session = Depends(get_db)):
    """
    A final report entered directly for a patient, outside any booking.
    """
    if not db.get(Patient, body.patient_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")
    if not db.get(LabTest, body.test_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Test not found")
    result = Result(
        patient_id=body.patient_id,
        test_id=body.test_id,
        parameter_results=lifecycle.parameter_rows(body.parameter_results),
        technician=body.technician,
        referred_by=body.referred_by or None,
        remarks=body.remarks,
        collected_at=body.collected_at,
    )
    db.add(result)
    db.flush()
    report = Report(
        patient_id=body.patient_id,
        result_id=result.id,
        secure_download_token=lifecycle.generate_token(),
        is_final=True,
    )
    db.add(report)
    db.commit()
    db.refresh(result)
    db.refresh(report)
    return {
        "report": ReportOut.model_validate(report),
        "result": ResultOut.model_validate(result),
        "download_url": f"/api/reports/download/{report.secure_download_token}",
    }


# ============================
# Patients
# ============================

@router.get("/patients", response_model=List[PatientOut])
def list_patients(q: Optional[str] = None, db: Session = Depends(get_db)):
    query = db.query(Patient)
    if q:
        pattern = f"%{q.strip()}%"
        query = query.filter(or_(
            Patient.name.ilike(pattern),
            Patient.phone.ilike(pattern),
            Patient.email.ilike(pattern),
            Patient.patient_code.ilike(pattern),
        ))
    return query.order_by(Patient.created_at.desc()).all()


@router.post("/patients", response_model=PatientOut)
def create_patient(body: schemas.PatientCreate, db: Session = Depends(get_db)):
    if auth_crud.get_patient_by_phone(db, body.phone):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Phone number already registered")
    if body.email and auth_crud.get_patient_by_email(db, body.email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")
    return auth_crud.create_patient(
        db, body.name, body.phone, email=body.email, gender=body.gender, address=body.address
    )


@router.get("/patients/{patient_id}/details")
def patient_details(patient_id: str, db: Session = Depends(get_db)):
    patient = db.get(Patient, patient_id)
    if not patient:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")
    bookings = (
        db.query(Booking)
        .filter(Booking.patient_id == patient_id)
        .order_by(Booking.created_at.desc())
        .all()
    )
    reports = (
        db.query(Report)
        .filter(Report.patient_id == patient_id)
        .order_by(Report.generated_at.desc())
        .all()
    )

    booking_entries = []
    for booking in bookings:
        booking_entries.append({
            **BookingOut.model_validate(booking).model_dump(),
            "tests": [TestOut.model_validate(t) for t in booking_crud.tests_for(db, booking.test_ids)],
            "health_package": (
                HealthPackageOut.model_validate(booking.health_package) if booking.health_package else None
            ),
            "reports": [_report_with_details(r) for r in reports if r.booking_id == booking.id],
        })
    return {
        "patient": PatientOut.model_validate(patient),
        "bookings": booking_entries,
        "standalone_reports": [_report_with_details(r) for r in reports if not r.booking_id],
        "stats": {
            "total_bookings": len(bookings),
            "total_tests": sum(len(b.test_ids or []) for b in bookings),
            "completed_reports": sum(1 for r in reports if r.is_final),
            "pending_bookings": sum(1 for b in bookings if b.status in EARLY_BOOKING_STATUSES),
        },
    }


# ============================
# Tests catalog
# ============================

@router.post("/tests", response_model=TestOut)
def create_test(body: TestCreate, db: Session = Depends(get_db)):
    if db.query(LabTest).filter(LabTest.code == body.code).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Test code already exists")
    test = LabTest(**body.model_dump())
    db.add(test)
    db.commit()
    db.refresh(test)
    return test
