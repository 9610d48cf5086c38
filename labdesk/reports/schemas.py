# labdesk/reports/schemas.py
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from labdesk.db.models import TestStatus


class ParameterResultIn(BaseModel):
    parameter_name: str = Field(..., min_length=1)
    value: str
    unit: Optional[str] = None
    normal_range: Optional[str] = None
    # Computed from value and normal_range when the client leaves it out
    is_abnormal: Optional[bool] = None


class TestReportEntry(BaseModel):
    technician: Optional[str] = None
    referred_by: Optional[str] = None
    parameter_results: List[ParameterResultIn]
    remarks: Optional[str] = None
    finalize: bool = False


class DirectReportCreate(BaseModel):
    patient_id: str
    test_id: str
    technician: str = Field(..., min_length=1)
    referred_by: Optional[str] = None
    collected_at: datetime
    parameter_results: List[ParameterResultIn]
    remarks: Optional[str] = None


class ResultOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    patient_id: str
    test_id: str
    parameter_results: list
    technician: str
    referred_by: Optional[str] = None
    remarks: Optional[str] = None
    collected_at: datetime
    created_at: datetime


class ReportOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    patient_id: str
    result_id: str
    booking_id: Optional[str] = None
    secure_download_token: str
    is_final: bool
    generated_at: datetime


class TestStatusOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    test_id: str
    status: TestStatus
    result_id: Optional[str] = None
    report_id: Optional[str] = None
    entered_at: Optional[datetime] = None
    finalized_at: Optional[datetime] = None
