from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class KeyManagerError(Exception):
    """Base class for authorized-key management failures."""


class InvalidKeyFormat(KeyManagerError):
    """A single entry's text is not a usable SSH public key."""


class KeyNotFound(KeyManagerError):
    """A delete identifier matched no stored key."""


class ImportLookupFailed(KeyManagerError):
    """The identity provider could not resolve an identity to keys."""


class BlockedError(KeyManagerError):
    """A change block vetoed a mutating operation."""


class PersistError(KeyManagerError):
    """Writing the key list back to environment config failed."""


def _error_payload(code: str, message: str, details):
    return {"code": code, "message": message, "details": details}


def register_error_handlers(app) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        detail = exc.detail
        code = f"http_{exc.status_code}"
        message = "Request failed"
        details = None
        if isinstance(detail, dict):
            code = detail.get("code", code)
            message = detail.get("message", message)
            details = detail.get("details")
        elif isinstance(detail, str):
            message = detail
        else:
            details = detail
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(code, message, details),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=_error_payload("validation_error", "Validation error", exc.errors()),
        )

    @app.exception_handler(BlockedError)
    async def blocked_exception_handler(request: Request, exc: BlockedError):
        return JSONResponse(
            status_code=409,
            content=_error_payload("operation_blocked", str(exc), None),
        )

    @app.exception_handler(PersistError)
    async def persist_exception_handler(request: Request, exc: PersistError):
        return JSONResponse(
            status_code=503,
            content=_error_payload("persist_failed", str(exc), None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        return JSONResponse(
            status_code=500,
            content=_error_payload("internal_error", "Internal server error", None),
        )
