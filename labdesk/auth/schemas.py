# labdesk/auth/schemas.py
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from labdesk.db.models import AdminRole


class AdminLogin(BaseModel):
    username: str = Field(..., min_length=1, examples=["admin1"])
    password: str = Field(..., min_length=1)


class PatientRegister(BaseModel):
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1, examples=["9876543210"])
    email: Optional[EmailStr] = None
    gender: Optional[str] = None
    dob: Optional[datetime] = None


class EmailRegister(PatientRegister):
    email: EmailStr
    password: str = Field(..., min_length=6)


class EmailLogin(BaseModel):
    email: EmailStr
    password: str


class EmailOnly(BaseModel):
    email: EmailStr


class EmailVerify(BaseModel):
    email: EmailStr
    otp: str


class PasswordReset(BaseModel):
    email: EmailStr
    otp: str
    new_password: str = Field(..., min_length=6)


class OtpRequest(BaseModel):
    contact: str = Field(..., min_length=1)
    purpose: str = Field(..., min_length=1, examples=["login"])


class OtpVerify(OtpRequest):
    otp: str


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    gender: Optional[str] = None
    address: Optional[str] = None


class PatientOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    patient_code: str
    name: str
    email: Optional[str] = None
    phone: str
    dob: Optional[datetime] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    email_verified: bool
    notes: Optional[str] = None
    created_at: datetime


class AdminOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    name: str
    role: AdminRole
    created_at: datetime


class PatientSession(BaseModel):
    patient: PatientOut
    token: str


class AdminSession(BaseModel):
    admin: AdminOut
    token: str
