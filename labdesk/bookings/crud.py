# labdesk/bookings/crud.py
from datetime import datetime
from typing import Iterable, List, Optional
from sqlalchemy.orm import Session
from labdesk.bookings.payments import classify_payment
from labdesk.bookings.schemas import BookingCreate
from labdesk.db.models import Booking, BookingStatus, HealthPackage, LabTest
from labdesk.reports.lifecycle import start_tracking


def tests_for(db: Session, test_ids: Iterable[str]) -> List[LabTest]:
    """
    Looks up tests in the order given; unknown ids are skipped.
    """
    test_ids = list(test_ids or [])
    if not test_ids:
        return []
    found = {t.id: t for t in db.query(LabTest).filter(LabTest.id.in_(test_ids)).all()}
    return [found[test_id] for test_id in dict.fromkeys(test_ids) if test_id in found]


def unknown_test_ids(db: Session, test_ids: Iterable[str]) -> List[str]:
    known = {t.id for t in tests_for(db, test_ids)}
    return [test_id for test_id in test_ids if test_id not in known]


def create_booking(db: Session, body: BookingCreate, patient_id: Optional[str] = None) -> Booking:
    booking = Booking(
        patient_id=patient_id,
        guest_name=body.guest_name,
        phone=body.phone,
        email=body.email,
        test_ids=list(dict.fromkeys(body.test_ids)),
        health_package_id=body.health_package_id,
        type=body.type,
        slot=body.slot,
        status=BookingStatus.pending,
        payment_method=body.payment_method,
        payment_status=classify_payment(body.payment_method, body.razorpay_order_id, body.razorpay_payment_id),
        transaction_id=body.transaction_id,
        razorpay_order_id=body.razorpay_order_id,
        razorpay_payment_id=body.razorpay_payment_id,
        amount_paid=body.amount_paid,
        discount_amount=body.discount_amount,
        payment_date=datetime.utcnow(),
        user_latitude=body.user_latitude,
        user_longitude=body.user_longitude,
        distance_from_lab=body.distance_from_lab,
        collection_address=body.collection_address,
    )
    start_tracking(booking)
    db.add(booking)
    db.commit()
    db.refresh(booking)
    return booking


def package_exists(db: Session, package_id: str) -> bool:
    return db.get(HealthPackage, package_id) is not None
