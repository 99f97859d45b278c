"""Authentication helpers."""

# Standard library
import logging
import warnings
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Iterator

# Third-party
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError, ExpiredSignatureError
from passlib.context import CryptContext
from sqlalchemy.orm import Session

# Local
from modhealth_core.db import SessionLocal
from modhealth_core.models import User
from modhealth_core.config import Settings


Settings().load_backend_env()
_settings = Settings()

logger = logging.getLogger(__name__)
auth_log = logging.getLogger("modhealth_api.auth")

_INSECURE_DEFAULT = "dev-insecure-secret-key-change-me"
SECRET_KEY = _settings.secret_key or _INSECURE_DEFAULT

if SECRET_KEY == _INSECURE_DEFAULT:
    warnings.warn(
        "Using insecure default SECRET_KEY. Set a proper one in your environment!",
        RuntimeWarning,
    )
    logger.warning("auth: insecure default SECRET_KEY in use; set a proper one in env")

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_HOURS = _settings.access_token_expire_hours

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plaintext password against a hashed value."""
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def hash_password(password: str) -> str:
    """Return a hashed representation of ``password``."""
    return pwd_context.hash(password)


def authenticate_user(username: str, password: str, db: Session) -> Optional[User]:
    """Return the ``User`` when ``username`` exists and ``password`` matches."""
    user = db.query(User).filter(User.username == username).first()
    if not user:
        return None
    if not verify_password(password, user.password_hash or ""):
        return None
    return user


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT access token containing ``data`` (e.g. ``{"sub": username}``)."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Dict:
    """Decode a JWT token; raises ExpiredSignatureError or JWTError."""
    return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="users/login")


def get_db() -> Iterator[Session]:
    """Yield a SQLAlchemy session and ensure it's closed after use."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    """Resolve the current user from a bearer token."""
    try:
        payload = decode_token(token)
    except ExpiredSignatureError:
        auth_log.warning("auth.token expired")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="expired token")
    except JWTError:
        auth_log.warning("auth.token invalid")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid token")

    username = payload.get("sub")
    if not username:
        auth_log.warning("auth.token missing_sub")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid token: no subject")

    user = db.query(User).filter(User.username == username).first()
    if not user:
        auth_log.warning("auth.user not_found sub=%s", username)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid token: user not found")
    auth_log.debug("auth.user ok sub=%s", username)
    return user


__all__ = [
    "verify_password",
    "hash_password",
    "authenticate_user",
    "create_access_token",
    "decode_token",
    "oauth2_scheme",
    "get_db",
    "get_current_user",
    "ExpiredSignatureError",
    "JWTError",
]
