# labdesk/reports/routes.py
import os
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session
from labdesk.bookings.payments import is_payment_cleared
from labdesk.config import settings
from labdesk.db.models import Booking, Report
from labdesk.db.session import get_db

router = APIRouter(tags=["Reports"])
templates = Jinja2Templates(directory=os.path.join(os.path.dirname(__file__), "..", "templates"))


@router.get("/reports/download/{token}", response_class=HTMLResponse)
def download_report(token: str, request: Request, db: Session = Depends(get_db)):
    """
    Renders a report by its secure token. Reports that belong to a booking are
    only served once the booking's payment is cleared; reports without a
    booking (walk-in or admin-created) are always served.
    """
    report = db.query(Report).filter(Report.secure_download_token == token).first()
    if not report:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found or link expired")

    if report.booking_id:
        booking = db.get(Booking, report.booking_id)
        if not booking:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Unable to verify payment status. Please contact support."
            )
        if not is_payment_cleared(booking.payment_status):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Payment is not verified. Please complete your payment to access the report."
            )

    result = report.result
    return templates.TemplateResponse(request, "report.html", {
        "lab_name": settings.LAB_NAME,
        "report": report,
        "patient": report.patient,
        "test": result.test if result else None,
        "parameters": result.parameter_results if result else [],
        "result": result,
    })
