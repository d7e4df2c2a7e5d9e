# auth service - jwt bearer token issue and verification
# tokens carry the owner identity in the "sub" claim

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from sahara.config import settings


logger = logging.getLogger(__name__)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """create a jwt access token"""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """decode and validate a jwt token, returns payload or none"""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
        return payload
    except JWTError as e:
        logger.warning(f"Token decode failed: {e}")
        return None


def resolve_subject(token: str) -> Optional[dict]:
    """verify a bearer token and return the subject identity, or none if rejected"""
    payload = decode_token(token)
    if payload is None:
        return None
    if payload.get("type") != "access":
        logger.warning("Rejected token with non-access type")
        return None
    subject = payload.get("sub")
    if not subject:
        return None
    return {"id": str(subject), "email": payload.get("email")}
