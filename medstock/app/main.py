from __future__ import annotations

import asyncio
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request

from medstock.app.api.deps import authenticate_before_validation
from medstock.app.api.router import router as api_router
from medstock.app.config import get_settings
from medstock.app.errors import register_exception_handlers
from medstock.app.utils.logging import add_context, clear_context, configure_logging, get_logger
from medstock.services.audit import AuditRecord, AuditSink, LogPublisher

logger = get_logger(__name__)


def build_audit_record(request: Request, started_at: datetime, elapsed_ms: float, status_code: int) -> AuditRecord:
    endpoint = request.scope.get("endpoint")
    client = request.client
    return AuditRecord(
        class_name=getattr(endpoint, "__module__", "unknown"),
        method_name=getattr(endpoint, "__name__", request.url.path),
        started_at=started_at,
        elapsed_ms=round(elapsed_ms, 3),
        operator_email=getattr(request.state, "operator_email", None),
        remote_addr=client.host if client else None,
        args_snapshot={
            "path": dict(request.path_params),
            "query": dict(request.query_params),
        },
        result_snapshot={"status_code": status_code},
    )


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)

    audit_sink = AuditSink(LogPublisher(settings.audit_topic), capacity=settings.audit_buffer_size)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        worker = asyncio.create_task(audit_sink.run())
        try:
            yield
        finally:
            audit_sink.stop()
            await worker

    app = FastAPI(title="Medicine Inventory", version="0.1.0", lifespan=lifespan)
    app.state.audit_sink = audit_sink
    register_exception_handlers(app, authenticate=authenticate_before_validation)

    @app.middleware("http")
    async def audit_middleware(request: Request, call_next):
        """Time the handler and hand an audit record to the sink, never blocking on it."""
        add_context(request_id=uuid.uuid4().hex, method=request.method, path=request.url.path)
        started_at = datetime.now(timezone.utc)
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            try:
                app.state.audit_sink.submit(build_audit_record(request, started_at, elapsed_ms, status_code))
            except Exception:
                logger.warning("audit_submit_failed", exc_info=True)
            clear_context()

    app.include_router(api_router)
    return app


app = create_app()


def run() -> None:
    """Start the HTTP server."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("medstock.app.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
