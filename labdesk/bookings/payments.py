# labdesk/bookings/payments.py
import hashlib
import hmac
from typing import Optional
from labdesk.db.models import PaymentMethod, PaymentStatus

# A report can be downloaded once its booking reaches one of these payment states.
DOWNLOADABLE_PAYMENT_STATUSES = {
    PaymentStatus.verified,
    PaymentStatus.cash_on_delivery,
    PaymentStatus.pay_at_lab,
}


def classify_payment(method: PaymentMethod, razorpay_order_id: Optional[str] = None,
                     razorpay_payment_id: Optional[str] = None) -> PaymentStatus:
    """
    Initial payment status of a booking.

    Cash on delivery and pay-at-lab keep their own status. A gateway payment
    carrying both the order and payment ids counts as verified; anything else
    waits for an admin to verify it.
    """
    if method == PaymentMethod.cash_on_delivery:
        return PaymentStatus.cash_on_delivery
    if method == PaymentMethod.pay_at_lab:
        return PaymentStatus.pay_at_lab
    if razorpay_order_id and razorpay_payment_id:
        return PaymentStatus.verified
    return PaymentStatus.paid_unverified


def verify_gateway_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    expected = hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature or "")


def is_payment_cleared(payment_status: Optional[PaymentStatus]) -> bool:
    return payment_status in DOWNLOADABLE_PAYMENT_STATUSES
