"""
Typed service errors and their HTTP mapping.

Services raise these; `register_exception_handlers` is the only place that
turns them into status codes.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from medstock.app.utils.logging import get_logger

logger = get_logger(__name__)


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def details(self) -> dict[str, Any]:
        return {}

    def body(self) -> dict[str, Any]:
        return {"error": self.message, **self.details()}


class ValidationError(ServiceError):
    status_code = 400

    def __init__(self, fields: dict[str, str]) -> None:
        super().__init__("; ".join(f"{k}: {v}" for k, v in fields.items()))
        self.fields = dict(fields)

    def body(self) -> dict[str, Any]:
        return dict(self.fields)


class Unauthenticated(ServiceError):
    status_code = 401


class Forbidden(ServiceError):
    status_code = 403


class NotFound(ServiceError):
    status_code = 404

    def __init__(self, message: str, missing_ids: Iterable[int] | None = None) -> None:
        super().__init__(message)
        self.missing_ids = sorted(missing_ids) if missing_ids is not None else None

    def details(self) -> dict[str, Any]:
        if self.missing_ids is None:
            return {}
        return {"missingIds": self.missing_ids}


class Conflict(ServiceError):
    status_code = 409


class AlreadyExists(Conflict):
    pass


class InUse(Conflict):
    pass


class InsufficientStock(Conflict):
    def __init__(self, medicine_id: int, available: int, requested: int) -> None:
        super().__init__(
            f"Insufficient stock for medicine ID {medicine_id} "
            f"(available={available}, requested={requested})"
        )
        self.medicine_id = medicine_id
        self.available = available
        self.requested = requested

    def details(self) -> dict[str, Any]:
        return {
            "medicineId": self.medicine_id,
            "available": self.available,
            "requested": self.requested,
        }


def format_request_errors(errors: Iterable[dict[str, Any]]) -> dict[str, str]:
    """Flatten pydantic error entries into a `{field: message}` mapping."""
    fields: dict[str, str] = {}
    for err in errors:
        loc = [str(part) for part in err.get("loc", ())]
        if loc and loc[0] in {"body", "query", "path", "header"}:
            loc = loc[1:] or loc[:1]
        key = ".".join(loc) or "body"
        fields.setdefault(key, err.get("msg", "Invalid value"))
    return fields


def register_exception_handlers(app: FastAPI, *, authenticate: Callable[[Request], None] | None = None) -> None:
    """
    `authenticate` runs before a request-validation error is reported, so a
    protected route answers 401 to an anonymous caller even when its body is
    malformed.
    """

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        logger.info(
            "request_rejected",
            error=type(exc).__name__,
            status_code=exc.status_code,
            detail=exc.message,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.body())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        if authenticate is not None:
            try:
                authenticate(request)
            except ServiceError as e:
                return await service_error_handler(request, e)
        fields = format_request_errors(exc.errors())
        logger.info("validation_failed", fields=fields)
        return JSONResponse(status_code=400, content=fields)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("unexpected_error", path=request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
