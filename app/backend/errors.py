from __future__ import annotations

from typing import Any
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class StoreError(Exception):
    """Base class for failures while reading the remote price store."""


class NotFoundError(StoreError):
    def __init__(self, status_code: int | None, url: str, reason: str | None = None):
        if status_code is None:
            message = f"Request failed ({reason or 'no response'}) - {url}"
        else:
            message = f"HTTP {status_code}{f' {reason}' if reason else ''} - {url}"
        super().__init__(message)
        self.status_code = status_code
        self.url = url
        self.reason = reason


class DecodeError(StoreError):
    pass


class ValidationError(StoreError):
    """A single series row whose fields could not be coerced to numbers."""

    def __init__(self, index: int, row: Any, message: str):
        super().__init__(f"row {index}: {message}")
        self.index = index
        self.row = row


class ApiError(Exception):
    def __init__(self, status_code: int, code: str, message: str, detail: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.detail = detail


def _error_body(code: str, message: str, request_id: str | None, detail: Any = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
        }
    }
    if detail is not None:
        payload["error"]["detail"] = detail
    if request_id:
        payload["error"]["request_id"] = request_id
    return payload


def _status_code_to_error_code(status_code: int) -> str:
    mapping = {
        400: "BAD_REQUEST",
        404: "NOT_FOUND",
        409: "CONFLICT",
        422: "VALIDATION_ERROR",
        500: "INTERNAL_ERROR",
        502: "UPSTREAM_ERROR",
        503: "SERVICE_UNAVAILABLE",
    }
    return mapping.get(status_code, f"HTTP_{status_code}")


def store_error_to_api_error(exc: StoreError) -> ApiError:
    if isinstance(exc, NotFoundError):
        if exc.status_code == 404:
            return ApiError(404, "NOT_FOUND", str(exc), detail={"url": exc.url, "upstream_status": 404})
        return ApiError(502, "UPSTREAM_ERROR", str(exc), detail={"url": exc.url, "upstream_status": exc.status_code})
    if isinstance(exc, DecodeError):
        return ApiError(502, "DECODE_ERROR", str(exc))
    return ApiError(502, "UPSTREAM_ERROR", str(exc))


def register_error_handling(app: FastAPI, logger):
    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid4().hex[:12]
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    def _respond(request: Request, exc: ApiError):
        request_id = getattr(request.state, "request_id", None)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.code, exc.message, request_id, detail=exc.detail),
            headers={"X-Request-ID": request_id} if request_id else None,
        )

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return _respond(request, exc)

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        logger.warning("Store request failed: %s", exc)
        return _respond(request, store_error_to_api_error(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError):
        request_id = getattr(request.state, "request_id", None)
        return JSONResponse(
            status_code=422,
            content=_error_body(
                "VALIDATION_ERROR",
                "Request validation failed.",
                request_id,
                detail=exc.errors(),
            ),
            headers={"X-Request-ID": request_id} if request_id else None,
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        request_id = getattr(request.state, "request_id", None)
        code = _status_code_to_error_code(exc.status_code)
        detail = None
        message = "Request failed."
        if isinstance(exc.detail, dict):
            code = str(exc.detail.get("code") or code)
            message = str(exc.detail.get("message") or exc.detail.get("detail") or message)
            detail = exc.detail.get("detail")
        elif exc.detail:
            message = str(exc.detail)

        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(code, message, request_id, detail=detail),
            headers={"X-Request-ID": request_id} if request_id else None,
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        request_id = getattr(request.state, "request_id", None)
        logger.exception("Unhandled API exception [request_id=%s]", request_id)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "INTERNAL_ERROR",
                "Unexpected internal error.",
                request_id,
            ),
            headers={"X-Request-ID": request_id} if request_id else None,
        )
