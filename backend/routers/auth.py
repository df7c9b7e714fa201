"""FastAPI auth routes: signup, login and the current user's profile."""

import asyncio
from functools import partial

import bcrypt
from fastapi import APIRouter, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy import select

from config import Config
from dependencies import DB, CurrentUser, create_access_token
from logging_config import get_logger
from models_async import User
from schemas import LoginRequest, SignupRequest

limiter = Limiter(key_func=get_remote_address, enabled=Config.RATELIMIT_ENABLED)
logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _auth_payload(user: User) -> dict:
    access_token = create_access_token(user)
    return {
        "token": access_token,
        "access_token": access_token,
        "user": user.to_dict(),
    }


@router.post("/signup", status_code=201)
@limiter.limit("5/minute")
async def signup(data: SignupRequest, request: Request, db: DB):
    name = data.name.strip()
    email = data.email.strip().lower()
    password = data.password

    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="Email already registered")

    if data.username:
        result = await db.execute(select(User).where(User.username == data.username))
        if result.scalar_one_or_none():
            raise HTTPException(status_code=409, detail="Username already taken")

    loop = asyncio.get_running_loop()
    salt = await loop.run_in_executor(None, partial(bcrypt.gensalt, rounds=Config.BCRYPT_ROUNDS))
    password_hash = await loop.run_in_executor(
        None, partial(bcrypt.hashpw, password.encode("utf-8"), salt)
    )
    user = User(
        name=name,
        email=email,
        username=data.username,
        bio=data.bio or "",
        password_hash=password_hash.decode("utf-8"),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info("auth.signup", user_id=user.id)
    return _auth_payload(user)


@router.post("/login")
@limiter.limit("10/minute")
async def login(data: LoginRequest, request: Request, db: DB):
    email = data.email.strip().lower()
    password = data.password

    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    loop = asyncio.get_running_loop()
    pw_matches = await loop.run_in_executor(
        None, partial(bcrypt.checkpw, password.encode("utf-8"), user.password_hash.encode("utf-8"))
    )
    if not pw_matches:
        logger.info("auth.login.failed", user_id=user.id)
        raise HTTPException(status_code=401, detail="Invalid email or password")

    return _auth_payload(user)


@router.get("/me")
async def me(current_user: CurrentUser):
    return {"user": current_user.to_dict()}
