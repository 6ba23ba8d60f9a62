import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from config import Settings
from errors import AuthenticationInvalid, AuthenticationMissing
from validators import MAX_INTEGER

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)

bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def create_access_token(user_id: int, settings: Settings, now: Optional[datetime] = None) -> str:
    issued = now or datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "iat": issued,
        "exp": issued + timedelta(hours=settings.token_expire_hours),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> int:
    """Verify signature and expiry and return the user id from the ``sub`` claim."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise AuthenticationInvalid() from exc

    subject = payload.get("sub")
    try:
        user_id = int(subject)
    except (TypeError, ValueError) as exc:
        logger.info("Rejected bearer token with subject %r", subject)
        raise AuthenticationInvalid() from exc
    if not 0 < user_id <= MAX_INTEGER:
        logger.info("Rejected bearer token with subject %r", subject)
        raise AuthenticationInvalid()
    return user_id


def get_current_user_id(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_app_settings),
) -> int:
    if creds is None or creds.scheme != "Bearer" or not creds.credentials:
        raise AuthenticationMissing()

    user_id = decode_access_token(creds.credentials, settings)
    request.state.user_id = user_id
    return user_id
