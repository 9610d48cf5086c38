# labdesk/admin/schemas.py
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from labdesk.db.models import WalkinStatus
from labdesk.reports.schemas import TestStatusOut


class PatientCreate(BaseModel):
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None
    gender: Optional[str] = None
    address: Optional[str] = None


class ReviewApproval(BaseModel):
    is_approved: bool


class WalkinCreate(BaseModel):
    patient_id: str = Field(..., min_length=1)
    doctor_name: Optional[str] = None
    doctor_clinic: Optional[str] = None
    test_ids: List[str] = Field(..., min_length=1)
    notes: Optional[str] = None


class WalkinStatusUpdate(BaseModel):
    status: WalkinStatus


class WalkinOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    patient_id: str
    doctor_name: Optional[str] = None
    doctor_clinic: Optional[str] = None
    test_ids: List[str]
    status: WalkinStatus
    collected_at: datetime
    notes: Optional[str] = None
    test_report_status: List[TestStatusOut] = []
    created_at: datetime
