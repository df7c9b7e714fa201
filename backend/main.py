"""StudyHub API — FastAPI app with Socket.IO chat mounted at /socket.io."""

import os
import sqlite3
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from sqlalchemy.exc import DatabaseError as SADatabaseError

from config import Config
from database import init_db
from errors import AppError
from logging_config import configure_logging, get_logger
from routers.ai import router as ai_router
from routers.auth import router as auth_router
from routers.flashcards import router as flashcards_router
from routers.notes import router as notes_router
from routers.planner import router as planner_router
from routers.pomodoro import router as pomodoro_router
from routers.quizzes import router as quizzes_router
from routers.spaces import router as spaces_router
from socket_manager import socket_app

configure_logging()
logger = get_logger(__name__)

API_VERSION = "1.0.0"

UPLOAD_FOLDER = Config.UPLOAD_FOLDER
os.makedirs(UPLOAD_FOLDER, exist_ok=True)

# ── Rate limiter (slowapi) ─────────────────────────────────────────────────────
limiter = Limiter(key_func=get_remote_address, enabled=Config.RATELIMIT_ENABLED)


# ── Lifespan ───────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    Config.validate()
    await init_db()
    logger.info("database.initialized")
    yield


# ── FastAPI app ────────────────────────────────────────────────────────────────
app = FastAPI(title="StudyHub API", version=API_VERSION, lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# ── Exception handlers ─────────────────────────────────────────────────────────
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("app_error", path=request.url.path, status=exc.status_code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed input is a 400, like every other validation failure."""
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
        for e in exc.errors()
    ]
    detail = errors[0]["msg"] if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"detail": detail, "errors": errors})


@app.exception_handler(sqlite3.DatabaseError)
async def sqlite_db_error_handler(request: Request, exc: sqlite3.DatabaseError):
    """Return a clean 503 instead of a stack trace when SQLite is corrupted."""
    logger.critical("sqlite.DatabaseError", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=503,
        content={
            "error": "System maintenance in progress. Please try again shortly.",
            "code": "DB_MAINTENANCE",
        },
    )


@app.exception_handler(SADatabaseError)
async def sqlalchemy_db_error_handler(request: Request, exc: SADatabaseError):
    """Catch SQLAlchemy-wrapped DB errors (e.g. sqlalchemy.exc.OperationalError)."""
    logger.critical("sqlalchemy.DatabaseError", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=503,
        content={
            "error": "System maintenance in progress. Please try again shortly.",
            "code": "DB_MAINTENANCE",
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    if isinstance(exc, HTTPException):
        # must return a Response here; re-raising would double-handle the error
        return await http_exception_handler(request, exc)
    logger.error("unhandled_exception", path=request.url.path, error=str(exc), exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "An unexpected server error occurred. Please try again."},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ────────────────────────────────────────────────────────────────────
app.include_router(auth_router)
app.include_router(spaces_router)
app.include_router(notes_router)
app.include_router(flashcards_router)
app.include_router(ai_router)
app.include_router(quizzes_router)
app.include_router(planner_router)
app.include_router(pomodoro_router)

# ── Mount Socket.IO at /socket.io ──────────────────────────────────────────────
app.mount("/socket.io", socket_app)

# ── Mount uploaded note files ──────────────────────────────────────────────────
app.mount("/uploads", StaticFiles(directory=UPLOAD_FOLDER), name="uploads")


# ── Request logging middleware ─────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(
        "request.received",
        ip=request.client.host if request.client else "unknown",
        method=request.method,
        path=request.url.path,
    )
    return await call_next(request)


@app.get("/health")
async def health_check():
    return {"status": "ok", "version": API_VERSION}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=Config.HOST, port=Config.PORT, reload=False)
