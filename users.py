import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, Response, UploadFile
from pydantic import BaseModel
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

import pipelines
from config import settings
from database import create_document, get_db
from helpers import api_response, public_user
from schemas import User
from security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    get_current_user,
    hash_password,
    verify_password,
)
from storage import upload_file

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


# -------------------- Models --------------------
class LoginRequest(BaseModel):
    email: Optional[str] = None
    username: Optional[str] = None
    password: str


class RefreshRequest(BaseModel):
    refresh_token: Optional[str] = None


# -------------------- Helpers --------------------

def issue_tokens(db: Database, user: dict):
    access_token = create_access_token(user)
    refresh_token = create_refresh_token(user)
    db["user"].update_one({"_id": user["_id"]}, {"$set": {"refresh_token": refresh_token}})
    return access_token, refresh_token


def set_auth_cookies(response: Response, access_token: str, refresh_token: str):
    # httponly so scripts cannot read the tokens
    response.set_cookie(
        key="access_token",
        value=access_token,
        httponly=True,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        samesite="lax",
        secure=False,
    )
    response.set_cookie(
        key="refresh_token",
        value=refresh_token,
        httponly=True,
        max_age=settings.REFRESH_TOKEN_EXPIRE_MINUTES * 60,
        samesite="lax",
        secure=False,
    )


# -------------------- Register --------------------
@router.post("/register", status_code=201)
async def register_user(
    username: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    full_name: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    cover_image: Optional[UploadFile] = File(None),
    db: Database = Depends(get_db),
):
    if any(not field or not field.strip() for field in [username, email, full_name, password]):
        raise HTTPException(status_code=400, detail="All fields are required")

    username = username.strip().lower()
    email = email.strip().lower()

    if db["user"].find_one({"$or": [{"username": username}, {"email": email}]}):
        raise HTTPException(status_code=409, detail="User with email or username already exists")

    if avatar is None or not avatar.filename:
        raise HTTPException(status_code=400, detail="Avatar file is required")

    avatar_url = await upload_file(avatar, "avatars")
    cover_image_url = await upload_file(cover_image, "covers")
    if not avatar_url:
        raise HTTPException(status_code=400, detail="Avatar file is required")

    user = User(
        username=username,
        email=email,
        full_name=full_name.strip(),
        avatar=avatar_url,
        cover_image=cover_image_url,
        password_hash=hash_password(password),
    )
    try:
        doc = create_document(db, "user", user)
    except DuplicateKeyError:
        # lost a race against a concurrent registration
        raise HTTPException(status_code=409, detail="User with email or username already exists")

    created = db["user"].find_one({"_id": doc["_id"]}, {"password_hash": 0, "refresh_token": 0})
    if not created:
        raise HTTPException(status_code=500, detail="Something went wrong while registering the user")

    logger.info(f"Registered user {username}")
    return api_response(created, "User registered successfully", 201)


# -------------------- Session --------------------
@router.post("/login")
def login_user(payload: LoginRequest, response: Response, db: Database = Depends(get_db)):
    identifiers = []
    if payload.username and payload.username.strip():
        identifiers.append({"username": payload.username.strip().lower()})
    if payload.email and payload.email.strip():
        identifiers.append({"email": payload.email.strip().lower()})
    if not identifiers:
        raise HTTPException(status_code=400, detail="Username or email is required")

    user = db["user"].find_one({"$or": identifiers})
    if not user:
        raise HTTPException(status_code=404, detail="User does not exist")
    if not verify_password(payload.password, user.get("password_hash", "")):
        logger.warning(f"Failed login for {user['username']}")
        raise HTTPException(status_code=401, detail="Invalid user credentials")

    access_token, refresh_token = issue_tokens(db, user)
    set_auth_cookies(response, access_token, refresh_token)
    logger.info(f"User {user['username']} logged in")
    return api_response(
        {"user": public_user(user), "access_token": access_token, "refresh_token": refresh_token},
        "User logged in successfully",
    )


@router.post("/logout")
def logout_user(response: Response, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    db["user"].update_one({"_id": user["_id"]}, {"$unset": {"refresh_token": ""}})
    response.delete_cookie("access_token")
    response.delete_cookie("refresh_token")
    logger.info(f"User {user['username']} logged out")
    return api_response({}, "User logged out")


@router.post("/refresh-token")
def refresh_access_token(
    request: Request,
    response: Response,
    payload: Optional[RefreshRequest] = None,
    db: Database = Depends(get_db),
):
    incoming = request.cookies.get("refresh_token") or (payload.refresh_token if payload else None)
    if not incoming:
        raise HTTPException(status_code=401, detail="Unauthorized request")

    user_id = decode_token(incoming, settings.REFRESH_TOKEN_SECRET)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    user = db["user"].find_one({"_id": user_id})
    if not user:
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    if user.get("refresh_token") != incoming:
        logger.warning(f"Stale refresh token presented for {user['username']}")
        raise HTTPException(status_code=401, detail="Refresh token is expired or used")

    access_token, refresh_token = issue_tokens(db, user)
    set_auth_cookies(response, access_token, refresh_token)
    return api_response(
        {"access_token": access_token, "refresh_token": refresh_token},
        "Access token refreshed",
    )


# -------------------- Profile --------------------
@router.get("/current-user")
def get_current_user_profile(user: dict = Depends(get_current_user)):
    return api_response(user, "User fetched successfully")


@router.get("/history")
def get_watch_history(user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    history = list(db["user"].aggregate(pipelines.watch_history(user["_id"])))
    return api_response(history, "Watch history fetched successfully")
