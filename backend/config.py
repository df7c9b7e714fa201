import os
from dotenv import load_dotenv

load_dotenv()

class Config:

    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
    OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")
    OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_TIMEOUT = float(os.getenv("OPENAI_TIMEOUT", "60"))

    # Flashcard/quiz generation budgets
    FLASHCARD_MAX_TOKENS = int(os.getenv("FLASHCARD_MAX_TOKENS", "800"))
    QUIZ_MAX_TOKENS = int(os.getenv("QUIZ_MAX_TOKENS", "1600"))
    MAX_GENERATED_FLASHCARDS = 12
    MAX_GENERATED_QUESTIONS = 20

    JWT_SECRET = os.getenv("JWT_SECRET") or os.getenv("SECRET_KEY")
    ACCESS_TOKEN_MINUTES = int(os.getenv("ACCESS_TOKEN_MINUTES", str(60 * 24 * 30)))
    BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

    HOST = os.getenv("HOST", "0.0.0.0")
    PORT = int(os.getenv("PORT", "5000"))

    MAX_CONTENT_LENGTH = 10 * 1024 * 1024
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", "uploads")
    ALLOWED_NOTE_EXTENSIONS = {'.pdf', '.png', '.jpg', '.jpeg', '.docx'}
    TEXT_EXTENSIONS = {'.txt', '.md', '.csv'}

    # Space chat
    MESSAGES_DEFAULT_LIMIT = int(os.getenv("MESSAGES_DEFAULT_LIMIT", "50"))
    MESSAGES_MAX_LIMIT = int(os.getenv("MESSAGES_MAX_LIMIT", "200"))

    # Pomodoro: work minutes -> break minutes
    POMODORO_BREAKS = {10: 2, 20: 5, 60: 10}

    CORS_ORIGINS = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
    ]

    # slowapi reads RATELIMIT_ENABLED itself and would override the flag below
    RATELIMIT_ENABLED = os.getenv("STUDYHUB_RATELIMIT_ENABLED", "true").lower() == "true"

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_JSON = os.getenv("LOG_JSON", "false").lower() == "true"

    @classmethod
    def validate(cls):
        import logging as _logging
        _log = _logging.getLogger(__name__)
        if not cls.OPENAI_API_KEY and not cls.OPENROUTER_API_KEY:
            _log.warning(
                "Neither OPENAI_API_KEY nor OPENROUTER_API_KEY is set. "
                "Flashcard and quiz generation will not work without a provider key."
            )
        return True

    @classmethod
    def get_cors_origins(cls):
        cors_origins = os.getenv("CORS_ORIGINS")
        if cors_origins:
            return [origin.strip() for origin in cors_origins.split(",")]
        return cls.CORS_ORIGINS
