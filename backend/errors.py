"""Application error taxonomy.

Services raise these; ``main.py`` turns them into JSON responses carrying
``status_code``. Any ``extra`` keyword arguments are merged into the body.
"""


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        return {"detail": self.message, **self.extra}


class ValidationError(AppError):
    status_code = 400


class AuthenticationError(AppError):
    status_code = 401


class AuthorizationError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class AIOutputError(AppError):
    """The model answered, but nothing usable could be parsed out of it."""

    status_code = 500


class UpstreamError(AppError):
    """The LLM provider call itself failed."""

    status_code = 502
