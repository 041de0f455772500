"""
Audit sink.

Handlers never wait on audit delivery: `submit` appends to a bounded buffer
(oldest record dropped on overflow) and a background task drains it to the
publisher. A failing publisher loses the record, never the request.
"""

from __future__ import annotations

import asyncio
import threading
from collections import deque
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Protocol

from medstock.app.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuditRecord:
    class_name: str
    method_name: str
    started_at: datetime
    elapsed_ms: float
    operator_email: str | None
    remote_addr: str | None
    args_snapshot: dict[str, Any] = field(default_factory=dict)
    result_snapshot: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        payload = asdict(self)
        return {
            "className": payload["class_name"],
            "methodName": payload["method_name"],
            "startedAt": self.started_at.isoformat(),
            "elapsedMs": payload["elapsed_ms"],
            "operatorEmail": payload["operator_email"],
            "remoteAddr": payload["remote_addr"],
            "argsSnapshot": payload["args_snapshot"],
            "resultSnapshot": payload["result_snapshot"],
        }


class Publisher(Protocol):
    def publish(self, record: AuditRecord) -> None:
        ...


class LogPublisher:
    """Emits each record as a structured log event on the audit topic."""

    def __init__(self, topic: str = "audit") -> None:
        self.topic = topic
        self._logger = get_logger("medstock.audit")

    def publish(self, record: AuditRecord) -> None:
        self._logger.info("audit", topic=self.topic, **record.to_payload())


class AuditSink:
    def __init__(self, publisher: Publisher, *, capacity: int = 1000) -> None:
        self.publisher = publisher
        self.capacity = capacity
        self._buffer: deque[AuditRecord] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._stopped: asyncio.Event | None = None
        self.dropped = 0

    def __len__(self) -> int:
        return len(self._buffer)

    def submit(self, record: AuditRecord) -> None:
        with self._lock:
            if len(self._buffer) == self.capacity:
                self.dropped += 1
            self._buffer.append(record)

    def _pop(self) -> AuditRecord | None:
        with self._lock:
            return self._buffer.popleft() if self._buffer else None

    def drain(self) -> int:
        """Publish every buffered record. Returns how many were delivered."""
        delivered = 0
        while True:
            record = self._pop()
            if record is None:
                break
            try:
                self.publisher.publish(record)
                delivered += 1
            except Exception as e:
                logger.warning(
                    "audit_delivery_failed",
                    method=record.method_name,
                    error=str(e),
                )
        return delivered

    async def run(self, interval: float = 0.5) -> None:
        self._stopped = asyncio.Event()
        while not self._stopped.is_set():
            self.drain()
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
        self.drain()

    def stop(self) -> None:
        if self._stopped is not None:
            self._stopped.set()
