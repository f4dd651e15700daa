"""Lifecycle event emission for aggregate swap operations.

Emission is best-effort: events are scheduled in the background and a
failing emitter is only logged, never surfaced to the caller.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

import httpx

from multiswap.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Strong references to in-flight emissions so they are not garbage collected
_pending: set[asyncio.Task] = set()


class EventEmitter(Protocol):
    """Anything that can record a named event with attributes."""

    async def emit(self, event_name: str, attributes: dict[str, Any]) -> None:
        ...


class NullEmitter:
    """Emitter that drops every event."""

    async def emit(self, event_name: str, attributes: dict[str, Any]) -> None:
        return None


class RecordingEmitter:
    """Emitter that keeps events in memory, in emission order."""

    def __init__(self):
        self.events: list[tuple[str, dict[str, Any]]] = []

    async def emit(self, event_name: str, attributes: dict[str, Any]) -> None:
        self.events.append((event_name, dict(attributes)))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


class SpanEventEmitter:
    """Posts span events to a tracing collector.

    One trace and one span cover the emitter's lifetime, matching a wallet
    session on the host side.
    """

    def __init__(
        self,
        url: str,
        api_key: str = "",
        trace_id: Optional[str] = None,
        span_id: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.trace_id = trace_id or uuid.uuid4().hex
        self.span_id = span_id or uuid.uuid4().hex[:16]
        self.timeout = timeout
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def emit(self, event_name: str, attributes: dict[str, Any]) -> None:
        client = await self._get_client()
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        response = await client.post(
            f"{self.url}/span-events",
            headers=headers,
            json={
                "traceId": self.trace_id,
                "spanId": self.span_id,
                "eventName": event_name,
                "attributes": {
                    **attributes,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
            },
        )
        response.raise_for_status()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def _log_failure(event_name: str, task: asyncio.Task) -> None:
    _pending.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error(f"Failed to track {event_name}: {error}")


def emit_background(
    emitter: EventEmitter, event_name: str, attributes: dict[str, Any]
) -> Optional[asyncio.Task]:
    """Schedule an emission without waiting for it.

    Must be called from a running event loop. Errors raised while creating
    the emission coroutine are logged as well.
    """
    try:
        task = asyncio.get_running_loop().create_task(emitter.emit(event_name, attributes))
    except Exception as e:
        logger.error(f"Failed to track {event_name}: {e}")
        return None
    _pending.add(task)
    task.add_done_callback(lambda t: _log_failure(event_name, t))
    return task


async def drain_pending() -> None:
    """Wait for this loop's in-flight emissions; used on shutdown and in tests."""
    loop = asyncio.get_running_loop()
    tasks = [t for t in _pending if t.get_loop() is loop]
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)


def create_emitter(settings: Optional[Settings] = None) -> EventEmitter:
    """Create the emitter configured by settings."""
    settings = settings or get_settings()
    if settings.telemetry_enabled and settings.telemetry_url:
        return SpanEventEmitter(settings.telemetry_url, api_key=settings.telemetry_api_key)
    if settings.telemetry_enabled:
        logger.warning("TELEMETRY_URL not set - telemetry disabled")
    return NullEmitter()
