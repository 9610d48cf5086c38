# labdesk/utils/jwt_utils.py
from datetime import datetime, timedelta
from typing import Optional, Dict
from abc import ABC, abstractmethod
import jwt
from labdesk.config import settings

# ===============================
# ABSTRACT INTERFACE (Factory)
# ===============================

class JWTFactory(ABC):
    """
    Abstract base class for issuing and verifying access tokens.
    Route handlers only depend on this interface; the signing algorithm is an implementation detail.
    """

    @abstractmethod
    def create_token(self, data: Dict, expires_delta: Optional[timedelta] = None) -> str:
        """
        :param data: Payload data to be encoded in the token
        :param expires_delta: Optional custom expiration time
        :return: Encoded JWT token as string
        """
        pass

    @abstractmethod
    def verify_token(self, token: str) -> Optional[Dict]:
        """
        :param token: Encoded JWT string
        :return: Decoded payload if valid; otherwise, None
        """
        pass


# =====================================================
# CONCRETE FACTORY IMPLEMENTATION: HS256 Algorithm
# =====================================================

class HS256JWTFactory(JWTFactory):
    """
    JWTFactory signing with a shared secret (HS256 by default, from settings).
    """

    def __init__(self):
        self.secret_key = settings.SECRET_KEY
        self.algorithm = settings.ALGORITHM
        self.default_expiry = timedelta(minutes=settings.PATIENT_TOKEN_EXPIRE_MINUTES)

    def create_token(self, data: Dict, expires_delta: Optional[timedelta] = None) -> str:
        to_encode = data.copy()
        expire = datetime.utcnow() + (expires_delta or self.default_expiry)
        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Optional[Dict]:
        """
        Returns None if token is invalid or expired.
        """
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.PyJWTError:
            return None


def issue_access_token(subject_id: str, subject_type: str) -> str:
    """
    Issues a bearer token for an admin or a patient. The 'type' claim drives role checks.
    """
    minutes = (
        settings.ADMIN_TOKEN_EXPIRE_MINUTES if subject_type == "admin" else settings.PATIENT_TOKEN_EXPIRE_MINUTES
    )
    return jwt_factory.create_token(
        data={"sub": subject_id, "type": subject_type},
        expires_delta=timedelta(minutes=minutes),
    )


# Single factory instance used across the app.
jwt_factory = HS256JWTFactory()
