# labdesk/auth/crud.py
import secrets
from datetime import datetime, timedelta
from sqlalchemy import func
from sqlalchemy.orm import Session
from passlib.context import CryptContext
from labdesk.config import settings
from labdesk.db.models import Admin, AdminRole, Otp, Patient

# CryptContext for secure password hashing (using bcrypt)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    return pwd_context.verify(password, hashed_password)


def get_admin_by_username(db: Session, username: str):
    return db.query(Admin).filter(Admin.username == username).first()


def create_admin(db: Session, username: str, password: str, name: str, role: AdminRole = AdminRole.admin):
    admin = Admin(username=username, hashed_password=hash_password(password), name=name, role=role)
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin


def authenticate_admin(db: Session, username: str, password: str):
    admin = get_admin_by_username(db, username)
    if not admin or not verify_password(password, admin.hashed_password):
        return None
    return admin


def get_patient_by_phone(db: Session, phone: str):
    return db.query(Patient).filter(Patient.phone == phone).first()


def get_patient_by_email(db: Session, email: str):
    return db.query(Patient).filter(Patient.email == email).first()


def generate_patient_code(db: Session) -> str:
    """
    Human readable patient id: {prefix}-{YYYYMMDD}-{daily sequence}.
    """
    prefix = f"{settings.PATIENT_CODE_PREFIX}-{datetime.utcnow().strftime('%Y%m%d')}-"
    count = db.query(func.count(Patient.id)).filter(Patient.patient_code.like(f"{prefix}%")).scalar() or 0
    return f"{prefix}{count + 1:04d}"


def create_patient(db: Session, name: str, phone: str, email: str = None, password: str = None, **fields):
    patient = Patient(
        patient_code=generate_patient_code(db),
        name=name,
        phone=phone,
        email=email,
        hashed_password=hash_password(password) if password else None,
        **fields,
    )
    db.add(patient)
    db.commit()
    db.refresh(patient)
    return patient


# ============================
# One-time passwords
# ============================

def create_otp(db: Session, contact: str, purpose: str, minutes: int = None) -> Otp:
    """
    Replaces any outstanding OTP for the same contact and purpose.
    """
    db.query(Otp).filter(Otp.contact == contact, Otp.purpose == purpose).delete()
    otp = Otp(
        contact=contact,
        code=f"{secrets.randbelow(900000) + 100000}",
        purpose=purpose,
        expires_at=datetime.utcnow() + timedelta(minutes=minutes or settings.OTP_EXPIRE_MINUTES),
    )
    db.add(otp)
    db.commit()
    db.refresh(otp)
    return otp


def get_active_otp(db: Session, contact: str, purpose: str):
    return (
        db.query(Otp)
        .filter(Otp.contact == contact, Otp.purpose == purpose, Otp.expires_at >= datetime.utcnow())
        .first()
    )


def consume_otp(db: Session, contact: str, code: str, purpose: str) -> bool:
    """
    Checks a code and deletes the OTP on success. Failed checks count against
    OTP_MAX_ATTEMPTS; an exhausted OTP is deleted.
    """
    otp = get_active_otp(db, contact, purpose)
    if not otp:
        return False
    if otp.attempts >= settings.OTP_MAX_ATTEMPTS:
        db.delete(otp)
        db.commit()
        return False
    if not secrets.compare_digest(otp.code, code):
        otp.attempts += 1
        db.commit()
        return False
    db.delete(otp)
    db.commit()
    return True
