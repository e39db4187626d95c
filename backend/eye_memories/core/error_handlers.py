import logging
import time

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from eye_memories.services.image_repository import ImageNotFoundError

IMAGES_PATH_PREFIX = "/api/images"
DURATION_HEADER = "X-Request-Duration-ms"
logger = logging.getLogger("eye_memories.middleware")


def _is_image_request(request: Request) -> bool:
    return request.url.path.startswith(IMAGES_PATH_PREFIX)


def error_body(request: Request, message, error: str = "image_error") -> dict:
    return {
        "success": False,
        "error": error,
        "message": message,
        "path": request.url.path,
    }


class ImageRequestMiddleware(BaseHTTPMiddleware):
    """Times image API requests and turns unhandled errors into a JSON 500."""

    async def dispatch(self, request: Request, call_next):
        if not _is_image_request(request):
            return await call_next(request)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "Unhandled image API exception",
                extra={"path": request.url.path, "method": request.method},
            )
            response = JSONResponse(status_code=500, content=error_body(request, "Internal server error"))

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers[DURATION_HEADER] = f"{duration_ms:.2f}"
        logger.info(
            "Image request completed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "duration_ms": duration_ms,
                "status_code": response.status_code,
            },
        )
        return response


def register_error_handlers(app: FastAPI) -> None:
    app.add_middleware(ImageRequestMiddleware)

    @app.exception_handler(RequestValidationError)
    async def validation_handler(request: Request, exc: RequestValidationError):
        if not _is_image_request(request):
            return await request_validation_exception_handler(request, exc)

        logger.warning(
            "Image request validation error",
            extra={"path": request.url.path, "method": request.method, "errors": exc.errors()},
        )
        body = error_body(request, "Invalid data provided", error="validation_error")
        body["detail"] = _public_errors(exc.errors())
        return JSONResponse(status_code=422, content=body)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        headers = getattr(exc, "headers", None)
        if not _is_image_request(request):
            return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)

        if exc.status_code >= 500:
            logger.error(
                "Image HTTP exception",
                extra={"path": request.url.path, "method": request.method, "status_code": exc.status_code},
            )
        return JSONResponse(status_code=exc.status_code, content=error_body(request, exc.detail), headers=headers)

    @app.exception_handler(ImageNotFoundError)
    async def not_found_handler(request: Request, exc: ImageNotFoundError):
        logger.info("Image not found", extra={"image_id": exc.image_id, "path": request.url.path})
        return JSONResponse(status_code=404, content=error_body(request, "Image not found"))

    @app.exception_handler(IntegrityError)
    async def integrity_handler(request: Request, exc: IntegrityError):
        logger.warning("Integrity error", extra={"path": request.url.path, "error": str(exc.orig)})
        return JSONResponse(status_code=400, content=error_body(request, "Duplicate field value entered"))


def _public_errors(errors) -> list:
    # input and ctx are left out: they may hold inf, nan or exception objects
    return [
        {"type": error.get("type"), "loc": list(error.get("loc", ())), "msg": error.get("msg")}
        for error in errors
    ]
