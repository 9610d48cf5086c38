# labdesk/auth/routes.py
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Security, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from labdesk.auth import schemas, crud
from labdesk.config import settings
from labdesk.db.models import Patient
from labdesk.db.session import get_db
from labdesk.notifications.dispatch import enqueue
from labdesk.utils.jwt_utils import jwt_factory, issue_access_token
from celery_worker import send_otp_email_task

logger = logging.getLogger(__name__)

router = APIRouter()
# Missing credentials are reported as 401 by get_current_user instead of HTTPBearer's default.
bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme)):
    """
    Dependency that extracts and verifies the JWT token from the Authorization header.
    Returns the decoded token payload ({"sub": id, "type": "admin" | "patient"}) if valid.
    """
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    payload = jwt_factory.verify_token(credentials.credentials)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials"
        )
    return payload


def get_optional_user(credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme)):
    """
    Like get_current_user, but guests (no Authorization header) get None.
    """
    if credentials is None:
        return None
    return get_current_user(credentials)


def get_current_admin(user: dict = Depends(get_current_user)):
    if user.get("type") != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


def get_current_patient(user: dict = Depends(get_current_user), db: Session = Depends(get_db)) -> Patient:
    if user.get("type") != "patient":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    patient = db.get(Patient, user.get("sub"))
    if not patient:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication credentials")
    return patient


def _patient_session(patient: Patient) -> schemas.PatientSession:
    return schemas.PatientSession(
        patient=schemas.PatientOut.model_validate(patient),
        token=issue_access_token(patient.id, "patient"),
    )


def _send_otp(db: Session, contact: str, purpose: str, minutes: Optional[int] = None):
    otp = crud.create_otp(db, contact, purpose, minutes)
    if "@" in contact:
        enqueue(send_otp_email_task, contact, otp.code, purpose)
    else:
        # SMS delivery is not wired up; the code is only logged.
        logger.info("OTP issued for %s (%s)", contact, purpose)


@router.post("/admin/login", response_model=schemas.AdminSession, tags=["Authentication"])
def admin_login(body: schemas.AdminLogin, db: Session = Depends(get_db)):
    admin = crud.authenticate_admin(db, body.username, body.password)
    if not admin:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return schemas.AdminSession(
        admin=schemas.AdminOut.model_validate(admin),
        token=issue_access_token(admin.id, "admin"),
    )


@router.post("/auth/register", tags=["Authentication"])
def register(body: schemas.PatientRegister, db: Session = Depends(get_db)):
    """
    Phone registration. The patient logs in afterwards with /auth/verify-otp.
    """
    if crud.get_patient_by_phone(db, body.phone):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Phone number already registered")
    patient = crud.create_patient(db, body.name, body.phone, email=body.email, gender=body.gender, dob=body.dob)
    _send_otp(db, body.phone, "login")
    return {"message": "Registration successful. OTP sent.", "patient_code": patient.patient_code}


@router.post("/auth/request-otp", tags=["Authentication"])
def request_otp(body: schemas.OtpRequest, db: Session = Depends(get_db)):
    _send_otp(db, body.contact, body.purpose)
    return {"message": "OTP sent successfully"}


@router.post("/auth/verify-otp", response_model=schemas.PatientSession, tags=["Authentication"])
def verify_otp(body: schemas.OtpVerify, db: Session = Depends(get_db)):
    if not crud.consume_otp(db, body.contact, body.otp, body.purpose):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired OTP")
    patient = crud.get_patient_by_phone(db, body.contact) or crud.get_patient_by_email(db, body.contact)
    if not patient:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Patient not found. Please register first.")
    return _patient_session(patient)


@router.post("/auth/register-email", tags=["Authentication"])
def register_email(body: schemas.EmailRegister, db: Session = Depends(get_db)):
    if crud.get_patient_by_email(db, body.email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")
    if crud.get_patient_by_phone(db, body.phone):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Phone number already registered")
    patient = crud.create_patient(
        db, body.name, body.phone, email=body.email, password=body.password, gender=body.gender, dob=body.dob
    )
    _send_otp(db, body.email, "email_verification")
    return {
        "message": "Registration successful. Please verify your email.",
        "patient": schemas.PatientOut.model_validate(patient),
        "requires_verification": True,
    }


@router.post("/auth/resend-verification", tags=["Authentication"])
def resend_verification(body: schemas.EmailOnly, db: Session = Depends(get_db)):
    patient = crud.get_patient_by_email(db, body.email)
    if not patient:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Email not found")
    if patient.email_verified:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already verified")
    _send_otp(db, body.email, "email_verification")
    return {"message": "Verification OTP sent successfully"}


@router.post("/auth/verify-email", response_model=schemas.PatientSession, tags=["Authentication"])
def verify_email(body: schemas.EmailVerify, db: Session = Depends(get_db)):
    if not crud.get_active_otp(db, body.email, "email_verification"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No verification request found. Please request a new OTP."
        )
    if not crud.consume_otp(db, body.email, body.otp, "email_verification"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid OTP")
    patient = crud.get_patient_by_email(db, body.email)
    if not patient:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")
    patient.email_verified = True
    db.commit()
    db.refresh(patient)
    return _patient_session(patient)


@router.post("/auth/login-email", response_model=schemas.PatientSession, tags=["Authentication"])
def login_email(body: schemas.EmailLogin, db: Session = Depends(get_db)):
    patient = crud.get_patient_by_email(db, body.email)
    if not patient:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Email is not registered. Please sign up first.")
    if not patient.hashed_password:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Password not set. Please use forgot password to set one."
        )
    if not crud.verify_password(body.password, patient.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect password. Please try again.")
    if not patient.email_verified:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account is not active. Please verify your email."
        )
    return _patient_session(patient)


@router.post("/auth/forgot-password", tags=["Authentication"])
def forgot_password(body: schemas.EmailOnly, db: Session = Depends(get_db)):
    # Same answer either way so the endpoint does not reveal registered emails.
    if crud.get_patient_by_email(db, body.email):
        _send_otp(db, body.email, "password_reset", settings.PASSWORD_RESET_OTP_EXPIRE_MINUTES)
    return {"message": "If this email is registered, you will receive a password reset OTP"}


@router.post("/auth/reset-password", tags=["Authentication"])
def reset_password(body: schemas.PasswordReset, db: Session = Depends(get_db)):
    if not crud.consume_otp(db, body.email, body.otp, "password_reset"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired OTP")
    patient = crud.get_patient_by_email(db, body.email)
    if not patient:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")
    patient.hashed_password = crud.hash_password(body.new_password)
    db.commit()
    return {"message": "Password reset successful. You can now login with your new password."}


@router.patch("/profile", response_model=schemas.PatientOut, tags=["Patient"])
def update_profile(body: schemas.ProfileUpdate, patient: Patient = Depends(get_current_patient),
                   db: Session = Depends(get_db)):
    updates = body.model_dump(exclude_unset=True)
    if updates.get("email") and updates["email"] != patient.email:
        if crud.get_patient_by_email(db, updates["email"]):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")
        patient.email_verified = False
    for field, value in updates.items():
        setattr(patient, field, value)
    db.commit()
    db.refresh(patient)
    return patient
