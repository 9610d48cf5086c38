# labdesk/bookings/routes.py
import logging
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from labdesk.auth.routes import get_current_patient, get_optional_user
from labdesk.bookings import crud, schemas
from labdesk.bookings.payments import classify_payment, is_payment_cleared, verify_gateway_signature
from labdesk.catalog.schemas import TestOut
from labdesk.config import settings
from labdesk.db.models import Booking, Patient, PaymentStatus, Report
from labdesk.db.session import get_db
from labdesk.notifications.dispatch import enqueue
from celery_worker import notify_booking_created_task

logger = logging.getLogger(__name__)

router = APIRouter()


def booking_with_tests(db: Session, booking: Booking) -> dict:
    data = schemas.BookingOut.model_validate(booking).model_dump()
    data["tests"] = crud.tests_for(db, booking.test_ids)
    return data


@router.post("/bookings", response_model=schemas.BookingOut, tags=["Bookings"])
def create_booking(body: schemas.BookingCreate, user: Optional[dict] = Depends(get_optional_user),
                   db: Session = Depends(get_db)):
    """
    Checkout. Guests book without a token; a patient token links the booking
    to the patient.
    """
    unknown = crud.unknown_test_ids(db, body.test_ids)
    if unknown:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown test ids: {', '.join(unknown)}")
    if body.health_package_id and not crud.package_exists(db, body.health_package_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Health package not found")

    patient_id = user.get("sub") if user and user.get("type") == "patient" else None
    booking = crud.create_booking(db, body, patient_id)
    logger.info("Booking %s created (%s, %s)", booking.id, booking.type.value, booking.payment_status.value)
    enqueue(notify_booking_created_task, booking.id)
    return booking


@router.get("/patient/bookings", response_model=List[schemas.BookingWithTests], tags=["Patient"])
def my_bookings(patient: Patient = Depends(get_current_patient), db: Session = Depends(get_db)):
    bookings = (
        db.query(Booking)
        .filter(Booking.patient_id == patient.id)
        .order_by(Booking.created_at.desc())
        .all()
    )
    return [booking_with_tests(db, booking) for booking in bookings]


@router.get("/patient/reports", tags=["Patient"])
def my_reports(patient: Patient = Depends(get_current_patient), db: Session = Depends(get_db)):
    """
    Final reports grouped by booking, newest first. The download token is
    withheld while a booking's payment is not cleared. Reports without a
    booking each get their own group.
    """
    reports = (
        db.query(Report)
        .filter(Report.patient_id == patient.id, Report.is_final.is_(True))
        .order_by(Report.generated_at.desc())
        .all()
    )
    groups = {}
    for report in reports:
        booking = report.booking
        if report.booking_id is None:
            cleared = True
        else:
            cleared = booking is not None and is_payment_cleared(booking.payment_status)
        payment_status = booking.payment_status.value if booking else None
        test = report.result.test if report.result else None
        entry = {
            "id": report.id,
            "result_id": report.result_id,
            "booking_id": report.booking_id,
            "generated_at": report.generated_at,
            "test": TestOut.model_validate(test) if test else None,
            "payment_verified": cleared,
            "payment_status": payment_status,
            "secure_download_token": report.secure_download_token if cleared else None,
        }
        key = report.booking_id or f"individual-{report.id}"
        if key not in groups:
            package = booking.health_package if booking else None
            groups[key] = {
                "booking_id": key,
                "booking_date": booking.slot if booking else report.generated_at,
                "booking_type": booking.type.value if booking else "walkin",
                "health_package_id": package.id if package else None,
                "health_package_name": package.name if package else None,
                "payment_verified": cleared,
                "payment_status": payment_status,
                "reports": [],
            }
        groups[key]["reports"].append(entry)
    return sorted(groups.values(), key=lambda group: group["booking_date"], reverse=True)


@router.patch("/patient/bookings/{booking_id}/payment", response_model=schemas.BookingOut, tags=["Patient"])
def record_payment(booking_id: str, body: schemas.PaymentUpdate, patient: Patient = Depends(get_current_patient),
                   db: Session = Depends(get_db)):
    booking = db.get(Booking, booking_id)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    if booking.patient_id != patient.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized")
    if booking.payment_status == PaymentStatus.verified:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Payment already verified")

    booking.payment_method = body.payment_method
    booking.payment_status = classify_payment(body.payment_method)
    if body.transaction_id:
        booking.transaction_id = body.transaction_id
    booking.amount_paid = body.amount_paid
    booking.payment_date = datetime.utcnow()
    db.commit()
    db.refresh(booking)
    return booking


@router.get("/payment/razorpay-key", tags=["Payments"])
def razorpay_key():
    if not settings.RAZORPAY_KEY_ID:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Payment gateway not configured")
    return {"key_id": settings.RAZORPAY_KEY_ID}


@router.post("/payment/verify", tags=["Payments"])
def verify_payment(body: schemas.GatewayVerification):
    if not settings.RAZORPAY_KEY_SECRET:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Payment gateway not configured")
    if not verify_gateway_signature(
        body.razorpay_order_id, body.razorpay_payment_id, body.razorpay_signature, settings.RAZORPAY_KEY_SECRET
    ):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payment signature")
    return {
        "success": True,
        "message": "Payment verified successfully",
        "payment_id": body.razorpay_payment_id,
        "order_id": body.razorpay_order_id,
    }
