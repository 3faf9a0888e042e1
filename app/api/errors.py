import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import get_settings
from app.services.exceptions import DomainError, InternalError

logger = logging.getLogger(__name__)

settings = get_settings()


def error_response(status_code: int, message: str, **extra) -> JSONResponse:
    """Render a failure as {"success": false, "message": ...}."""
    body = {"success": False, "message": message}
    body.update(extra)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain, HTTP and validation errors onto the JSON error envelope."""

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        extra = {}
        if isinstance(exc, InternalError):
            cause = exc.__cause__
            logger.error(f"{request.method} {request.url.path} failed: {cause!r}")
            if cause is not None and not settings.is_production:
                extra["error"] = {"type": type(cause).__name__, "message": str(cause)}
        else:
            logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        return error_response(exc.status_code, exc.message, **extra)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            "Validation error",
            errors=[
                {"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]}
                for e in exc.errors()
            ],
        )
