from __future__ import annotations

import base64
import datetime as dt
import hashlib
import hmac
import logging
import os
from typing import Optional, Tuple

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db
from .models import AuthToken, Driver

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12
MIN_PASSWORD_LENGTH = 8
# bcrypt only reads the first 72 bytes and newer releases refuse longer input
MAX_PASSWORD_BYTES = 72

bearer_scheme = HTTPBearer(auto_error=False)


def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def generate_token_value() -> str:
    raw = os.urandom(32)
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def token_hash(token: str) -> str:
    digest = hmac.new(settings.token_secret.encode(), msg=token.encode(), digestmod=hashlib.sha256)
    return digest.hexdigest()


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def register_driver(
    db: Session,
    email: str,
    name: str,
    password: str,
    license_number: Optional[str] = None,
    eld_device_id: Optional[str] = None,
) -> Driver:
    normalized_email = email.strip().lower()
    if len(password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
        )
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at most {MAX_PASSWORD_BYTES} bytes",
        )
    existing = db.query(Driver).filter(Driver.email == normalized_email).one_or_none()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")
    hashed = hash_password(password)
    driver = Driver(
        email=normalized_email,
        name=name.strip(),
        password_hash=hashed,
        license_number=license_number,
        eld_device_id=eld_device_id,
    )
    db.add(driver)
    db.commit()
    db.refresh(driver)
    logger.info("Registered driver %s", driver.id)
    return driver


def create_token(db: Session, driver: Driver, ttl_minutes: Optional[int] = None) -> Tuple[AuthToken, str]:
    token_value = generate_token_value()
    ttl = settings.token_ttl_minutes if ttl_minutes is None else ttl_minutes
    expires_at = _now() + dt.timedelta(minutes=ttl) if ttl else None
    token = AuthToken(token_hash=token_hash(token_value), driver_id=driver.id, expires_at=expires_at)
    db.add(token)
    db.commit()
    db.refresh(token)
    return token, token_value


def login(db: Session, email: str, password: str) -> Tuple[AuthToken, str]:
    driver = db.query(Driver).filter(Driver.email == email.strip().lower()).one_or_none()
    if not driver or not verify_password(password, driver.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    return create_token(db, driver)


def verify_token(db: Session, token_value: str) -> Optional[AuthToken]:
    token = db.query(AuthToken).filter(AuthToken.token_hash == token_hash(token_value)).one_or_none()
    if not token:
        return None
    now = _now()
    if not token.is_active(now):
        return None
    token.last_used_at = now
    db.commit()
    return token


def revoke_token(db: Session, token: AuthToken) -> None:
    token.revoked_at = _now()
    db.add(token)
    db.commit()


def get_current_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> AuthToken:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not Authenticated")
    token = verify_token(db, credentials.credentials)
    if token is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not Authenticated")
    return token


def get_current_driver(token: AuthToken = Depends(get_current_token)) -> Driver:
    return token.driver
