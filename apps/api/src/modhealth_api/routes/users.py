from fastapi import APIRouter, Depends, HTTPException
import logging
from pydantic import BaseModel
from sqlalchemy.orm import Session
from modhealth_core.config import Settings
from modhealth_core.models import User
from modhealth_core.auth import (
    hash_password,
    authenticate_user,
    create_access_token,
    decode_token,
    ExpiredSignatureError,
    JWTError,
    oauth2_scheme,
    get_db,
    get_current_user,
)

router = APIRouter(prefix="/users", tags=["users"])
log = logging.getLogger("modhealth_api")
auth_log = logging.getLogger("modhealth_api.auth")


class UserCreateRequest(BaseModel):
    username: str
    password: str
    admin_token: str = ""


class UserLoginRequest(BaseModel):
    username: str
    password: str


@router.post("/")
@router.post("", include_in_schema=False)
def create_user(request: UserCreateRequest, db: Session = Depends(get_db)):
    first_user = db.query(User).first() is None
    if not first_user:
        admin_token = Settings().admin_token
        if not admin_token or request.admin_token != admin_token:
            auth_log.warning("user.create denied: invalid admin token for username=%s", request.username)
            raise HTTPException(status_code=403, detail="Invalid admin token")
    if db.query(User).filter(User.username == request.username).first():
        log.warning("user.create conflict: username exists username=%s", request.username)
        raise HTTPException(status_code=400, detail="Username already exists")
    user = User(username=request.username, password_hash=hash_password(request.password))
    db.add(user)
    db.commit()
    db.refresh(user)
    log.info("user.create ok: id=%s username=%s", user.id, user.username)
    return {"id": user.id, "username": user.username}


@router.post("/login")
@router.post("/login/", include_in_schema=False)
def login(request: UserLoginRequest, db: Session = Depends(get_db)):
    user = authenticate_user(request.username, request.password, db)
    if not user:
        auth_log.warning("user.login fail: username=%s", request.username)
        raise HTTPException(status_code=401, detail="Invalid username or password")
    token = create_access_token({"sub": user.username})
    auth_log.info("user.login ok: id=%s username=%s", user.id, user.username)
    return {"access_token": token, "token_type": "bearer"}


@router.post("/validate")
@router.post("/validate/", include_in_schema=False)
def validate_token(token: str = Depends(oauth2_scheme)):
    try:
        payload = decode_token(token)
    except ExpiredSignatureError:
        auth_log.warning("user.validate expired")
        raise HTTPException(status_code=401, detail="Token expired. Please sign in again.")
    except JWTError:
        auth_log.warning("user.validate invalid")
        raise HTTPException(status_code=401, detail="Invalid token.")
    auth_log.info("user.validate ok: sub=%s", payload.get("sub"))
    return {"valid": True, "payload": payload}


@router.get("/me")
def read_me(user = Depends(get_current_user)):
    return {"id": user.id, "username": user.username}
