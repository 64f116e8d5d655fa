import logging
from datetime import datetime, timedelta
from typing import Optional

from bson import ObjectId
from fastapi import Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pymongo.database import Database

from config import settings
from database import get_db

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
# Missing bearer tokens yield None instead of a 401
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/users/login", auto_error=False)


# -------------------- Passwords --------------------

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


# -------------------- Tokens --------------------

def _encode(data: dict, secret: str, expires_delta: timedelta) -> str:
    to_encode = data.copy()
    to_encode.update({"exp": datetime.utcnow() + expires_delta})
    return jwt.encode(to_encode, secret, algorithm=settings.TOKEN_ALGORITHM)


def create_access_token(user: dict) -> str:
    return _encode(
        {
            "sub": str(user["_id"]),
            "email": user.get("email"),
            "username": user.get("username"),
            "full_name": user.get("full_name"),
        },
        settings.ACCESS_TOKEN_SECRET,
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_refresh_token(user: dict) -> str:
    return _encode(
        {"sub": str(user["_id"])},
        settings.REFRESH_TOKEN_SECRET,
        timedelta(minutes=settings.REFRESH_TOKEN_EXPIRE_MINUTES),
    )


def decode_token(token: str, secret: str) -> Optional[ObjectId]:
    """Return the user id carried by a token, or None when it is invalid or expired."""
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.TOKEN_ALGORITHM])
    except JWTError:
        return None
    user_id = payload.get("sub")
    if not user_id or not ObjectId.is_valid(user_id):
        return None
    return ObjectId(user_id)


# -------------------- Dependencies --------------------

def _resolve_user(request: Request, token: Optional[str], db: Database) -> Optional[dict]:
    token = token or request.cookies.get("access_token")
    if not token:
        return None
    user_id = decode_token(token, settings.ACCESS_TOKEN_SECRET)
    if user_id is None:
        logger.warning("Rejected invalid or expired access token")
        return None
    return db["user"].find_one({"_id": user_id}, {"password_hash": 0, "refresh_token": 0})


def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: Database = Depends(get_db),
) -> dict:
    """Reads the bearer token from the Authorization header first, then the access_token cookie."""
    user = _resolve_user(request, token, db)
    if not user:
        raise HTTPException(status_code=401, detail="Unauthorized request")
    return user


def get_optional_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: Database = Depends(get_db),
) -> Optional[dict]:
    return _resolve_user(request, token, db)
