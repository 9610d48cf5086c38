# labdesk/reports/lifecycle.py
"""
Per-test report progress for bookings and walk-in collections.

Each test of a parent moves forward only: pending -> entered -> finalized.
Saving a draft always writes a fresh Result and Report; only finalized
reports are listed to patients. Once every test of the parent is finalized
the parent flips to report_ready and the report-ready notification is queued.
"""
import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple, Union
from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from labdesk.db.models import (
    Booking, BookingStatus, Report, Result, TestReportStatus, TestStatus, WalkinCollection, WalkinStatus,
)
from labdesk.notifications.dispatch import enqueue
from labdesk.reports.schemas import ParameterResultIn, TestReportEntry
from celery_worker import notify_report_ready_task

logger = logging.getLogger(__name__)

Parent = Union[Booking, WalkinCollection]

DEFAULT_TECHNICIAN = "Lab Technician"
RANGE_PATTERN = re.compile(r"(\d+\.?\d*)\s*[-–]\s*(\d+\.?\d*)")
BOUND_PATTERN = re.compile(r"^([<>])\s*=?\s*(\d+\.?\d*)")
# Leading number of a reading such as "14.2 g/dL"
LEADING_NUMBER_PATTERN = re.compile(r"^\s*([-+]?(?:\d+\.?\d*|\.\d+))")


@dataclass
class ReportOutcome:
    result: Result
    report: Report
    parent: Parent
    all_completed: bool

    @property
    def download_url(self) -> str:
        return f"/api/reports/download/{self.report.secure_download_token}"


def generate_token() -> str:
    # 32 random bytes, hex encoded
    return secrets.token_hex(32)


def is_value_abnormal(value, normal_range: Optional[str]) -> bool:
    """
    Flags a measured value against its reference range. Understands "a-b",
    "<x" (value must stay below x) and ">x" (value must stay above x);
    anything that does not parse as a number is treated as normal.
    """
    if value is None or not normal_range:
        return False
    reading = LEADING_NUMBER_PATTERN.match(str(value))
    if not reading:
        return False
    number = float(reading.group(1))
    text = normal_range.strip()
    match = RANGE_PATTERN.search(text)
    if match:
        low, high = float(match.group(1)), float(match.group(2))
        return number < low or number > high
    match = BOUND_PATTERN.match(text)
    if match:
        limit = float(match.group(2))
        return number >= limit if match.group(1) == "<" else number <= limit
    return False


def parameter_rows(parameters: List[ParameterResultIn]) -> List[dict]:
    rows = []
    for param in parameters:
        row = param.model_dump()
        if row["is_abnormal"] is None:
            row["is_abnormal"] = is_value_abnormal(param.value, param.normal_range)
        rows.append(row)
    return rows


def parent_kind(parent: Parent) -> str:
    return "booking" if isinstance(parent, Booking) else "walkin"


def start_tracking(parent: Parent):
    """
    Creates one pending tracker row per distinct test of a new parent.
    """
    parent.report_statuses = [
        TestReportStatus(test_id=test_id, status=TestStatus.pending) for test_id in dict.fromkeys(parent.test_ids)
    ]


def _tracker_row(parent: Parent, test_id: str) -> Optional[TestReportStatus]:
    for row in parent.report_statuses:
        if row.test_id == test_id:
            return row
    return None


def all_finalized(parent: Parent) -> bool:
    finalized = {row.test_id for row in parent.report_statuses if row.status == TestStatus.finalized}
    return bool(parent.test_ids) and all(test_id in finalized for test_id in parent.test_ids)


def _roll_up(parent: Parent, was_completed: bool) -> Tuple[bool, bool]:
    """
    Returns (all_completed, just_completed), judged from the tracker rows.
    Delivered bookings and completed walk-ins keep their status; otherwise a
    completed parent becomes report_ready. Incomplete walk-ins move to
    processing; incomplete bookings keep their status.
    """
    all_completed = all_finalized(parent)
    is_booking = isinstance(parent, Booking)
    closed = BookingStatus.delivered if is_booking else WalkinStatus.completed
    if parent.status != closed:
        if all_completed:
            parent.status = BookingStatus.report_ready if is_booking else WalkinStatus.report_ready
        elif not is_booking:
            parent.status = WalkinStatus.processing
    return all_completed, all_completed and not was_completed


def _finish(db: Session, parent: Parent, result: Result, report: Report, was_completed: bool) -> ReportOutcome:
    all_completed, just_completed = _roll_up(parent, was_completed)
    db.commit()
    for item in (parent, result, report):
        db.refresh(item)
    if just_completed:
        logger.info("All reports finalized for %s %s", parent_kind(parent), parent.id)
        enqueue(notify_report_ready_task, parent_kind(parent), parent.id, report.id)
    return ReportOutcome(result=result, report=report, parent=parent, all_completed=all_completed)


def save_test_report(db: Session, parent: Parent, test_id: str, entry: TestReportEntry) -> ReportOutcome:
    """
    Records results for one test of a booking or walk-in collection, as a
    draft (entered) or final (finalized) report.
    """
    label = "booking" if isinstance(parent, Booking) else "collection"
    if test_id not in (parent.test_ids or []):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Test not part of this {label}")
    if not parent.patient_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{label.capitalize()} has no patient linked")

    row = _tracker_row(parent, test_id)
    if row is None:
        row = TestReportStatus(test_id=test_id, status=TestStatus.pending)
        parent.report_statuses.append(row)
    if row.status == TestStatus.finalized:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Report already finalized for this test")
    was_completed = all_finalized(parent)

    now = datetime.utcnow()
    result = Result(
        patient_id=parent.patient_id,
        test_id=test_id,
        parameter_results=parameter_rows(entry.parameter_results),
        technician=(entry.technician or "").strip() or DEFAULT_TECHNICIAN,
        referred_by=entry.referred_by or None,
        remarks=entry.remarks,
        collected_at=parent.collected_at if isinstance(parent, WalkinCollection) else now,
    )
    db.add(result)
    db.flush()
    report = Report(
        patient_id=parent.patient_id,
        result_id=result.id,
        booking_id=parent.id if isinstance(parent, Booking) else None,
        secure_download_token=generate_token(),
        is_final=entry.finalize,
    )
    db.add(report)
    db.flush()

    row.result_id = result.id
    row.entered_at = now
    if entry.finalize:
        row.status = TestStatus.finalized
        row.report_id = report.id
        row.finalized_at = now
    else:
        row.status = TestStatus.entered
    return _finish(db, parent, result, report, was_completed)


def finalize_test_report(db: Session, parent: Parent, test_id: str) -> ReportOutcome:
    """
    Promotes an entered draft to finalized, reusing its Result and Report.
    """
    row = _tracker_row(parent, test_id)
    if row is None or row.status == TestStatus.pending or not row.result_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No report found for this test")
    if row.status == TestStatus.finalized:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Report already finalized for this test")
    was_completed = all_finalized(parent)

    result = db.get(Result, row.result_id)
    report = (
        db.query(Report)
        .filter(Report.result_id == row.result_id)
        .order_by(Report.generated_at.desc())
        .first()
    )
    if report is None:
        report = Report(
            patient_id=result.patient_id,
            result_id=result.id,
            booking_id=parent.id if isinstance(parent, Booking) else None,
            secure_download_token=generate_token(),
        )
        db.add(report)
        db.flush()
    report.is_final = True

    row.status = TestStatus.finalized
    row.report_id = report.id
    row.finalized_at = datetime.utcnow()
    return _finish(db, parent, result, report, was_completed)
