"""
Error taxonomy for the notes backend and the FastAPI handlers that map it to HTTP.

Every core error carries a machine-readable code and the HTTP status it is
surfaced as. Handlers render a uniform envelope:

    {"error": {"code": "...", "message": "..."}}
"""

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.api.config import get_settings

logger = structlog.get_logger(__name__)


class NotesError(Exception):
    """Base class for every error raised by the core."""

    code = "ERROR"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__doc__ or self.code

    def to_response(self) -> dict:
        return {"error": {"code": self.code, "message": self.message}}


class ValidationError(NotesError):
    """Input failed a pre-condition check."""

    code = "VALIDATION_ERROR"
    http_status = status.HTTP_400_BAD_REQUEST


# Authentication


class AuthenticationError(NotesError):
    """Could not validate credentials."""

    code = "AUTHENTICATION_FAILED"
    http_status = status.HTTP_401_UNAUTHORIZED


class MissingCredentials(AuthenticationError):
    """Bearer token required."""

    code = "MISSING_CREDENTIALS"


class MalformedToken(AuthenticationError):
    """Token could not be parsed."""

    code = "MALFORMED_TOKEN"


class BadSignature(AuthenticationError):
    """Token signature is invalid."""

    code = "BAD_SIGNATURE"


class TokenExpired(AuthenticationError):
    """Token has expired."""

    code = "TOKEN_EXPIRED"


class PrincipalNotFound(AuthenticationError):
    """Token subject does not match any account."""

    code = "PRINCIPAL_NOT_FOUND"


class InvalidCredentials(AuthenticationError):
    """Invalid credentials."""

    code = "INVALID_CREDENTIALS"


# Authorization / resources


class AccessDenied(NotesError):
    """You do not have permission to access this resource."""

    code = "ACCESS_DENIED"
    http_status = status.HTTP_403_FORBIDDEN


class NotFoundError(NotesError):
    """Resource not found."""

    code = "NOT_FOUND"
    http_status = status.HTTP_404_NOT_FOUND


class ConflictError(NotesError):
    """Resource already exists."""

    code = "CONFLICT"
    http_status = status.HTTP_409_CONFLICT


# PUBLIC_INTERFACE
def register_error_handlers(app: FastAPI) -> None:
    """
    Register the global exception handlers on the app.

    With HIDE_FOREIGN_NOTES on (the default), AccessDenied raised on a /notes
    route is answered exactly like a missing note (404), so non-owners cannot
    probe which ids exist.
    """

    @app.exception_handler(NotesError)
    async def notes_error_handler(request: Request, exc: NotesError):
        if (
            isinstance(exc, AccessDenied)
            and get_settings().hide_foreign_notes
            and request.url.path.startswith("/notes")
        ):
            exc = NotFoundError("Note not found")

        headers = None
        if isinstance(exc, AuthenticationError):
            headers = {"WWW-Authenticate": "Bearer"}

        logger.info(
            "request.rejected",
            path=request.url.path,
            error_code=exc.code,
            status_code=exc.http_status,
        )
        return JSONResponse(
            status_code=exc.http_status,
            content=exc.to_response(),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.info("request.invalid", path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": {
                    "code": ValidationError.code,
                    "message": "Invalid request data",
                    "details": [
                        {
                            "field": ".".join(str(loc) for loc in e["loc"]),
                            "message": e["msg"],
                        }
                        for e in exc.errors()
                    ],
                }
            },
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.error("request.unhandled_error", path=request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": {"code": "INTERNAL_ERROR", "message": "An unexpected error occurred"}},
        )
