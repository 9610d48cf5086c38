# labdesk/db/models.py
from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Text, Enum, Boolean, Numeric, JSON, UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime
import enum
import uuid

Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


# Booking lifecycle
class BookingStatus(enum.Enum):
    pending = "pending"
    collected = "collected"
    processing = "processing"
    report_ready = "report_ready"
    delivered = "delivered"


class WalkinStatus(enum.Enum):
    pending = "pending"
    processing = "processing"
    report_ready = "report_ready"
    completed = "completed"


# Per-test progress inside a booking or walk-in collection
class TestStatus(enum.Enum):
    pending = "pending"
    entered = "entered"
    finalized = "finalized"


class PaymentStatus(enum.Enum):
    pending = "pending"
    paid_unverified = "paid_unverified"
    verified = "verified"
    cash_on_delivery = "cash_on_delivery"
    pay_at_lab = "pay_at_lab"


class PaymentMethod(enum.Enum):
    upi = "upi"
    debit_card = "debit_card"
    credit_card = "credit_card"
    net_banking = "net_banking"
    wallet = "wallet"
    bank_transfer = "bank_transfer"
    cash_on_delivery = "cash_on_delivery"
    pay_at_lab = "pay_at_lab"


class BookingType(enum.Enum):
    home_collection = "home_collection"
    lab_visit = "lab_visit"


class AdminRole(enum.Enum):
    admin = "admin"
    technician = "technician"


class NotificationType(enum.Enum):
    booking_created = "booking_created"
    booking_confirmed = "booking_confirmed"
    package_booking = "package_booking"
    sample_collected = "sample_collected"
    report_in_progress = "report_in_progress"
    report_ready = "report_ready"
    payment_received = "payment_received"
    payment_verified = "payment_verified"


class RecipientType(enum.Enum):
    patient = "patient"
    admin = "admin"
    both = "both"


class Patient(Base):
    __tablename__ = "patients"
    id = Column(String(36), primary_key=True, default=new_id)
    patient_code = Column(String(50), unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=True)
    phone = Column(String, unique=True, index=True, nullable=False)
    dob = Column(DateTime, nullable=True)
    gender = Column(String(20), nullable=True)
    address = Column(Text, nullable=True)
    hashed_password = Column(String, nullable=True)
    email_verified = Column(Boolean, default=False, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class LabTest(Base):
    __tablename__ = "tests"
    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    code = Column(String(50), unique=True, index=True, nullable=False)
    category = Column(String(100), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    duration = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)
    # [{"name", "unit", "normal_range", "param_code"}]
    parameters = Column(JSON, nullable=False, default=list)
    image_url = Column(String, nullable=True)


class Result(Base):
    __tablename__ = "results"
    id = Column(String(36), primary_key=True, default=new_id)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False)
    test_id = Column(String(36), ForeignKey("tests.id"), nullable=False)
    # [{"parameter_name", "value", "unit", "normal_range", "is_abnormal"}]
    parameter_results = Column(JSON, nullable=False, default=list)
    technician = Column(String, nullable=False)
    referred_by = Column(String, nullable=True)
    remarks = Column(Text, nullable=True)
    collected_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    patient = relationship("Patient")
    test = relationship("LabTest")


class Report(Base):
    __tablename__ = "reports"
    id = Column(String(36), primary_key=True, default=new_id)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False)
    result_id = Column(String(36), ForeignKey("results.id"), nullable=False)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=True)
    secure_download_token = Column(String(64), unique=True, index=True, nullable=False)
    is_final = Column(Boolean, default=True, nullable=False)
    generated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    patient = relationship("Patient")
    result = relationship("Result")
    booking = relationship("Booking")


class TrackedTestsMixin:
    """
    Shared by bookings and walk-in collections: the per-test tracker rows in
    the order of the parent's test_ids.
    """

    @property
    def test_report_status(self):
        by_test = {row.test_id: row for row in self.report_statuses}
        return [by_test[test_id] for test_id in dict.fromkeys(self.test_ids or []) if test_id in by_test]


class Booking(TrackedTestsMixin, Base):
    __tablename__ = "bookings"
    id = Column(String(36), primary_key=True, default=new_id)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=True)
    guest_name = Column(String, nullable=True)
    phone = Column(String, nullable=False)
    email = Column(String, nullable=True)
    test_ids = Column(JSON, nullable=False, default=list)
    health_package_id = Column(String(36), ForeignKey("health_packages.id"), nullable=True)
    type = Column(Enum(BookingType), nullable=False)
    slot = Column(DateTime, nullable=False)
    status = Column(Enum(BookingStatus), default=BookingStatus.pending, nullable=False)
    payment_method = Column(Enum(PaymentMethod), nullable=True)
    payment_status = Column(Enum(PaymentStatus), default=PaymentStatus.pending, nullable=False)
    transaction_id = Column(String, nullable=True)
    razorpay_order_id = Column(String, nullable=True)
    razorpay_payment_id = Column(String, nullable=True)
    amount_paid = Column(Numeric(10, 2), nullable=True)
    discount_amount = Column(Numeric(10, 2), nullable=True)
    payment_date = Column(DateTime, nullable=True)
    payment_verified_at = Column(DateTime, nullable=True)
    payment_verified_by = Column(String(36), ForeignKey("admins.id"), nullable=True)
    user_latitude = Column(Numeric(10, 7), nullable=True)
    user_longitude = Column(Numeric(10, 7), nullable=True)
    distance_from_lab = Column(Numeric(10, 2), nullable=True)
    collection_address = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    patient = relationship("Patient")
    health_package = relationship("HealthPackage")
    report_statuses = relationship(
        "TestReportStatus", back_populates="booking", cascade="all, delete-orphan"
    )


class WalkinCollection(TrackedTestsMixin, Base):
    __tablename__ = "walkin_collections"
    id = Column(String(36), primary_key=True, default=new_id)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False)
    doctor_name = Column(String, nullable=True)
    doctor_clinic = Column(String, nullable=True)
    test_ids = Column(JSON, nullable=False, default=list)
    status = Column(Enum(WalkinStatus), default=WalkinStatus.pending, nullable=False)
    collected_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    patient = relationship("Patient")
    report_statuses = relationship(
        "TestReportStatus", back_populates="walkin_collection", cascade="all, delete-orphan"
    )


class TestReportStatus(Base):
    """
    One row per (parent, test): the progress of a single test inside a booking
    or a walk-in collection. Exactly one of booking_id / walkin_collection_id is set.
    """
    __tablename__ = "test_report_statuses"
    __table_args__ = (
        UniqueConstraint("booking_id", "test_id", name="uq_report_status_booking_test"),
        UniqueConstraint("walkin_collection_id", "test_id", name="uq_report_status_walkin_test"),
    )
    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=True, index=True)
    walkin_collection_id = Column(String(36), ForeignKey("walkin_collections.id"), nullable=True, index=True)
    test_id = Column(String(36), nullable=False)
    status = Column(Enum(TestStatus), default=TestStatus.pending, nullable=False)
    result_id = Column(String(36), ForeignKey("results.id"), nullable=True)
    report_id = Column(String(36), ForeignKey("reports.id"), nullable=True)
    entered_at = Column(DateTime, nullable=True)
    finalized_at = Column(DateTime, nullable=True)

    booking = relationship("Booking", back_populates="report_statuses")
    walkin_collection = relationship("WalkinCollection", back_populates="report_statuses")


class Otp(Base):
    __tablename__ = "otps"
    id = Column(String(36), primary_key=True, default=new_id)
    contact = Column(String, index=True, nullable=False)
    code = Column(String(6), nullable=False)
    purpose = Column(String(30), nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)


class Admin(Base):
    __tablename__ = "admins"
    id = Column(String(36), primary_key=True, default=new_id)
    username = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    name = Column(String, nullable=False)
    role = Column(Enum(AdminRole), default=AdminRole.technician, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Review(Base):
    __tablename__ = "reviews"
    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    location = Column(String, nullable=False)
    rating = Column(Integer, nullable=False)
    review = Column(Text, nullable=False)
    is_approved = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Advertisement(Base):
    __tablename__ = "advertisements"
    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String, nullable=False)
    subtitle = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    gradient = Column(String(100), nullable=False)
    icon = Column(String(50), nullable=False)
    image_url = Column(String, nullable=True)
    cta_text = Column(String, nullable=False)
    cta_link = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class HealthPackage(Base):
    __tablename__ = "health_packages"
    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    category = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)
    test_ids = Column(JSON, nullable=False, default=list)
    report_time = Column(String(50), nullable=False)
    original_price = Column(Numeric(10, 2), nullable=False)
    discount_percentage = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    image_url = Column(String, nullable=True)
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class LabSettings(Base):
    __tablename__ = "lab_settings"
    id = Column(String(36), primary_key=True, default=new_id)
    lab_name = Column(String, nullable=False)
    lab_latitude = Column(Numeric(10, 7), nullable=False)
    lab_longitude = Column(Numeric(10, 7), nullable=False)
    max_collection_distance = Column(Integer, default=40, nullable=False)
    address = Column(Text, nullable=True)
    phone = Column(String, nullable=True)
    email = Column(String, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class Notification(Base):
    __tablename__ = "notifications"
    id = Column(String(36), primary_key=True, default=new_id)
    type = Column(Enum(NotificationType), nullable=False)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    recipient_type = Column(Enum(RecipientType), nullable=False)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=True, index=True)
    admin_id = Column(String(36), ForeignKey("admins.id"), nullable=True)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=True)
    report_id = Column(String(36), ForeignKey("reports.id"), nullable=True)
    # "metadata" is reserved on declarative classes
    details = Column("metadata", JSON, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
