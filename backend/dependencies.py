"""Shared FastAPI dependencies: DB session and bearer-token authentication.

``decode_access_token`` is also used by the Socket.IO handshake, so HTTP and
realtime connections resolve identity the same way.
"""

from datetime import datetime, timedelta
from typing import Annotated, Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import Config
from database import get_db
from errors import AuthenticationError
from models_async import User

JWT_SECRET = Config.JWT_SECRET
if not JWT_SECRET:
    raise SystemExit(
        "FATAL: JWT_SECRET environment variable is not set. "
        "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
    )

_bearer = HTTPBearer(auto_error=False)


def create_access_token(user: User) -> str:
    payload = {
        "user_id": user.id,
        "email": user.email,
        "type": "access",
        "iat": datetime.utcnow(),
        "exp": datetime.utcnow() + timedelta(minutes=Config.ACCESS_TOKEN_MINUTES),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


def decode_access_token(token: str) -> int:
    """Return the user id carried by a valid access token."""
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Not authorized, token expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Not authorized, token invalid")

    if payload.get("type") != "access" or not payload.get("user_id"):
        raise AuthenticationError("Not authorized, invalid token")
    return int(payload["user_id"])


async def load_user(db: AsyncSession, token: str) -> User:
    user_id = decode_access_token(token)
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise AuthenticationError("Not authorized, user not found")
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    db: AsyncSession = Depends(get_db),
) -> User:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Not authorized, no token provided")
    return await load_user(db, credentials.credentials)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Like ``get_current_user`` but anonymous callers get ``None``."""
    if credentials is None or not credentials.credentials:
        return None
    return await load_user(db, credentials.credentials)


CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[Optional[User], Depends(get_optional_user)]
DB = Annotated[AsyncSession, Depends(get_db)]
