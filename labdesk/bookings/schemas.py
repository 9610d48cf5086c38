# labdesk/bookings/schemas.py
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from labdesk.catalog.schemas import TestOut
from labdesk.db.models import BookingStatus, BookingType, PaymentMethod, PaymentStatus
from labdesk.reports.schemas import TestStatusOut


class BookingCreate(BaseModel):
    guest_name: Optional[str] = None
    phone: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None
    test_ids: List[str] = Field(..., min_length=1)
    health_package_id: Optional[str] = None
    type: BookingType
    slot: datetime
    payment_method: PaymentMethod
    transaction_id: Optional[str] = None
    amount_paid: Optional[float] = Field(None, ge=0)
    discount_amount: Optional[float] = Field(None, ge=0)
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    user_latitude: Optional[float] = None
    user_longitude: Optional[float] = None
    distance_from_lab: Optional[float] = None
    collection_address: Optional[str] = None


class PaymentUpdate(BaseModel):
    payment_method: PaymentMethod
    transaction_id: Optional[str] = None
    amount_paid: float = Field(..., gt=0)


class StatusUpdate(BaseModel):
    status: BookingStatus


class GatewayVerification(BaseModel):
    razorpay_order_id: str = Field(..., min_length=1)
    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_signature: str = Field(..., min_length=1)


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    patient_id: Optional[str] = None
    guest_name: Optional[str] = None
    phone: str
    email: Optional[str] = None
    test_ids: List[str]
    health_package_id: Optional[str] = None
    type: BookingType
    slot: datetime
    status: BookingStatus
    payment_method: Optional[PaymentMethod] = None
    payment_status: PaymentStatus
    transaction_id: Optional[str] = None
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    amount_paid: Optional[float] = None
    discount_amount: Optional[float] = None
    payment_date: Optional[datetime] = None
    payment_verified_at: Optional[datetime] = None
    payment_verified_by: Optional[str] = None
    user_latitude: Optional[float] = None
    user_longitude: Optional[float] = None
    distance_from_lab: Optional[float] = None
    collection_address: Optional[str] = None
    test_report_status: List[TestStatusOut] = []
    created_at: datetime


class BookingWithTests(BookingOut):
    tests: List[TestOut] = []
