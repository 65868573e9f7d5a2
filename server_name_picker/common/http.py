import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from server_name_picker.common import config
from server_name_picker.common.errors import InternalError, PickerError, Unauthorized

logger = logging.getLogger(__name__)

GENERIC_MESSAGE = "An unexpected error occurred"


def require_bearer(request: Request) -> str:
    """Presence check only; the gateway has already validated the token."""
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthorized("Authentication token is required")
    return token.strip()


def error_body(exc: PickerError, hardened: bool) -> dict:
    message = exc.message
    if hardened and exc.status_code >= 500:
        message = GENERIC_MESSAGE
    return {"error": exc.title, "message": message}


def install_error_handlers(app: FastAPI, hardened: bool = config.HARDENED_ERRORS) -> None:
    @app.exception_handler(PickerError)
    async def picker_error(request: Request, exc: PickerError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=exc)
        else:
            logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=error_body(exc, hardened))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": "Bad Request", "message": "Invalid request body"})

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"{request.method} {request.url.path} crashed: {exc}")
        err = InternalError(str(exc))
        return JSONResponse(status_code=500, content=error_body(err, hardened))
