"""
Security Module - Authentication
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from bizpulse.core.config import settings
from bizpulse.core.database import get_db
from bizpulse.core.exceptions import AuthenticationException
from bizpulse.schemas import TokenPayload

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Bearer token scheme
bearer_scheme = HTTPBearer(auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash"""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password"""
    return pwd_context.hash(password)


def create_access_token(payload: TokenPayload, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT carrying {userId, businessId, email, isAdmin, iat, exp}"""
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = payload.model_dump(by_alias=True)
    to_encode.update({"iat": now, "exp": now + expires_delta})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> TokenPayload:
    """Decode and validate a JWT token, raising AuthenticationException on failure"""
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        raise AuthenticationException("Token expired.")
    except JWTError:
        raise AuthenticationException("Invalid token.")

    try:
        return TokenPayload.model_validate(claims)
    except ValueError:
        raise AuthenticationException("Invalid token.")


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> TokenPayload:
    """
    Dependency resolving the bearer token to the caller's identity.
    The user and the business named in the token must still exist.
    """
    from bizpulse.models import User, Business

    if credentials is None or not credentials.credentials:
        raise AuthenticationException("Access denied. No token provided.")

    payload = decode_access_token(credentials.credentials)

    user = db.query(User).filter(User.id == payload.user_id).first()
    if user is None:
        raise AuthenticationException("Token is no longer valid.")

    business = db.query(Business).filter(Business.id == payload.business_id).first()
    if business is None:
        raise AuthenticationException("Business no longer exists.")

    return payload
