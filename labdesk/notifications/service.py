# labdesk/notifications/service.py
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session
from labdesk.config import settings
from labdesk.db.models import (
    Booking, BookingType, LabTest, Notification, NotificationType, Patient, RecipientType, WalkinCollection,
)
from labdesk.notifications.email import OutgoingEmail, render_email

PATIENT_RECIPIENTS = (RecipientType.patient, RecipientType.both)
ADMIN_RECIPIENTS = (RecipientType.admin, RecipientType.both)


def _visit_label(booking: Booking) -> str:
    return "home collection" if booking.type == BookingType.home_collection else "lab visit"


def _slot_text(booking: Booking) -> str:
    return booking.slot.strftime("%a, %b %d at %I:%M %p")


class NotificationService:
    """
    Writes in-app notifications and prepares the matching emails.
    The caller commits the session and hands the returned emails to the mail queue.
    """

    def __init__(self, db: Session):
        self.db = db

    def _add(self, type_: NotificationType, title: str, message: str, recipient: RecipientType, **fields):
        notification = Notification(type=type_, title=title, message=message, recipient_type=recipient, **fields)
        self.db.add(notification)
        return notification

    def _tests(self, test_ids) -> List[LabTest]:
        tests = self.db.query(LabTest).filter(LabTest.id.in_(list(test_ids))).all()
        by_id = {t.id: t for t in tests}
        return [by_id[tid] for tid in test_ids if tid in by_id]

    def _test_names(self, test_ids) -> List[str]:
        by_id = {t.id: t.name for t in self._tests(test_ids)}
        return [by_id.get(tid, "Test") for tid in test_ids]

    # ---- triggers -------------------------------------------------------

    def booking_created(self, booking_id: str) -> List[OutgoingEmail]:
        booking = self.db.get(Booking, booking_id)
        if not booking:
            return []
        patient = booking.patient
        tests = self._tests(booking.test_ids)
        total = float(sum(t.price for t in tests))
        name = patient.name if patient else booking.guest_name or "Valued Customer"
        package = booking.health_package
        label = _visit_label(booking)

        self._add(
            NotificationType.package_booking if package else NotificationType.booking_created,
            "Booking Confirmed",
            f"Your {label} is scheduled for {_slot_text(booking)}. {len(tests)} test(s) booked.",
            RecipientType.patient,
            patient_id=booking.patient_id,
            booking_id=booking.id,
            details={
                "test_count": len(tests),
                "total_amount": total,
                "booking_type": booking.type.value,
                "health_package_name": package.name if package else None,
            },
        )
        self._add(
            NotificationType.booking_created,
            "New Booking Received",
            f"New {label} booking from {name}. {len(tests)} test(s), Amount: Rs. {total:.2f}",
            RecipientType.admin,
            patient_id=booking.patient_id,
            booking_id=booking.id,
            details={"patient_name": name, "phone": booking.phone, "test_count": len(tests), "total_amount": total},
        )

        emails = []
        email = booking.email or (patient.email if patient else None)
        if email:
            emails.append(render_email(
                "booking_confirmation.html", "Booking Confirmed", email,
                patient_name=name, booking=booking, tests=tests, total=total, slot=_slot_text(booking),
                package=package,
            ))
        emails.append(render_email(
            "admin_notification.html", f"New Booking - {name}", settings.ADMIN_EMAIL,
            message=f"A new {label} booking has been received.",
            details={
                "Patient": name,
                "Phone": booking.phone,
                "Tests": ", ".join(t.name for t in tests),
                "Scheduled": _slot_text(booking),
                "Amount": f"Rs. {total:.2f}",
            },
        ))
        return emails

    def sample_collected(self, booking_id: str) -> List[OutgoingEmail]:
        booking = self.db.get(Booking, booking_id)
        if not booking:
            return []
        patient = booking.patient
        test_names = self._test_names(booking.test_ids)
        self._add(
            NotificationType.sample_collected,
            "Sample Collected",
            f"Your sample has been collected. {len(test_names)} test(s) are now being processed. "
            "You will be notified once results are ready.",
            RecipientType.patient,
            patient_id=booking.patient_id,
            booking_id=booking.id,
            details={"test_names": test_names},
        )
        email = booking.email or (patient.email if patient else None)
        if not email:
            return []
        name = patient.name if patient else booking.guest_name or "Valued Customer"
        return [render_email(
            "sample_collected.html", "Sample Collected", email,
            patient_name=name, test_names=test_names, expected_time="Within 24-48 hours",
        )]

    def report_ready(self, parent_kind: str, parent_id: str, report_id: str) -> List[OutgoingEmail]:
        model = Booking if parent_kind == "booking" else WalkinCollection
        parent = self.db.get(model, parent_id)
        if not parent or not parent.patient_id:
            return []
        patient = self.db.get(Patient, parent.patient_id)
        test_names = self._test_names(parent.test_ids)
        booking_id = parent.id if parent_kind == "booking" else None
        plural = "s are" if len(test_names) > 1 else " is"

        self._add(
            NotificationType.report_ready,
            "Report Ready",
            f"Your test report{plural} now ready! Log in to view and download your results.",
            RecipientType.patient,
            patient_id=patient.id,
            booking_id=booking_id,
            report_id=report_id,
            details={"test_names": test_names},
        )
        self._add(
            NotificationType.report_ready,
            "Report Generated",
            f"Report generated for {patient.name}. Tests: {', '.join(test_names)}",
            RecipientType.admin,
            patient_id=patient.id,
            booking_id=booking_id,
            report_id=report_id,
            details={"patient_name": patient.name, "test_names": test_names},
        )
        if not patient.email:
            return []
        return [render_email(
            "report_ready.html", "Your Test Report is Ready", patient.email,
            patient_name=patient.name, test_names=test_names,
            reports_url=f"{settings.PUBLIC_BASE_URL}/dashboard",
        )]

    def payment_verified(self, booking_id: str) -> List[OutgoingEmail]:
        booking = self.db.get(Booking, booking_id)
        if not booking:
            return []
        patient = booking.patient
        amount = float(booking.amount_paid or 0)
        method = booking.payment_method.value if booking.payment_method else "unknown"
        self._add(
            NotificationType.payment_verified,
            "Payment Verified",
            f"Your payment of Rs. {amount:.2f} has been verified. Thank you!",
            RecipientType.patient,
            patient_id=booking.patient_id,
            booking_id=booking.id,
            details={"amount": amount, "payment_method": method},
        )
        email = booking.email or (patient.email if patient else None)
        if not email:
            return []
        name = patient.name if patient else booking.guest_name or "Valued Customer"
        return [render_email(
            "payment_received.html", "Payment Confirmation", email,
            patient_name=name, amount=amount, payment_method=method, booking_id=booking.id,
        )]

    # ---- inbox ----------------------------------------------------------

    def for_patient(self, patient_id: str, limit: int = 50) -> List[Notification]:
        return (
            self.db.query(Notification)
            .filter(Notification.patient_id == patient_id, Notification.recipient_type.in_(PATIENT_RECIPIENTS))
            .order_by(Notification.created_at.desc())
            .limit(limit)
            .all()
        )

    def for_admins(self, limit: int = 100) -> List[Notification]:
        return (
            self.db.query(Notification)
            .filter(Notification.recipient_type.in_(ADMIN_RECIPIENTS))
            .order_by(Notification.created_at.desc())
            .limit(limit)
            .all()
        )

    def _unread(self, patient_id: Optional[str]):
        query = self.db.query(Notification).filter(Notification.is_read.is_(False))
        if patient_id:
            return query.filter(
                Notification.patient_id == patient_id, Notification.recipient_type.in_(PATIENT_RECIPIENTS)
            )
        return query.filter(Notification.recipient_type.in_(ADMIN_RECIPIENTS))

    def unread_count(self, patient_id: Optional[str] = None) -> int:
        return self._unread(patient_id).count()

    def mark_read(self, notification: Notification) -> Notification:
        notification.is_read = True
        notification.read_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def mark_all_read(self, patient_id: Optional[str] = None) -> int:
        updated = self._unread(patient_id).update(
            {Notification.is_read: True, Notification.read_at: datetime.utcnow()},
            synchronize_session=False,
        )
        self.db.commit()
        return updated


def is_visible_to(notification: Notification, user: dict) -> bool:
    if user.get("type") == "admin":
        return True
    return notification.patient_id == user.get("sub") and notification.recipient_type in PATIENT_RECIPIENTS


