"""Event system for dbnbook.

Provides typed notebook events and an asyncio event bus so that hosts
(renderers, loggers, the CLI) can react to session changes without the
session knowing about them.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from dbnbook.utils.logging_config import get_logger


class EventPriority(Enum):
    """Event priority levels."""

    LOW = 1
    NORMAL = 2
    HIGH = 3
    CRITICAL = 4


class EventType(Enum):
    """Built-in event types."""

    # Session events
    CONNECTION_CHANGED = "connection_changed"
    QUERY_ADDED = "query_added"
    QUERY_UPDATED = "query_updated"

    # Execution events
    QUERY_STARTED = "query_started"
    QUERY_COMPLETED = "query_completed"

    # Persistence events
    NOTEBOOK_LOADED = "notebook_loaded"
    NOTEBOOK_SAVED = "notebook_saved"
    NOTEBOOK_SAVE_FAILED = "notebook_save_failed"


@dataclass
class Event:
    """Base event class."""

    event_type: str = ""
    timestamp: float = field(default_factory=time.time)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    priority: EventPriority = EventPriority.NORMAL
    source: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    correlation_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary."""
        return {
            "event_type": self.event_type,
            "timestamp": self.timestamp,
            "event_id": self.event_id,
            "priority": self.priority.value,
            "source": self.source,
            "data": self.data,
            "correlation_id": self.correlation_id,
        }

    def to_json(self) -> str:
        """Convert event to JSON string."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Event:
        """Create event from dictionary."""
        return cls(
            event_type=data["event_type"],
            timestamp=data["timestamp"],
            event_id=data["event_id"],
            priority=EventPriority(data["priority"]),
            source=data.get("source"),
            data=data["data"],
            correlation_id=data.get("correlation_id"),
        )


# Typed event classes
@dataclass
class ConnectionChangedEvent(Event):
    """Event emitted when the notebook's connection URI changes."""

    connection_uri: str = ""
    backend: str | None = None

    def __post_init__(self):
        """Initialize event type and data."""
        self.event_type = EventType.CONNECTION_CHANGED.value
        self.data.update(
            {
                "connection_uri": self.connection_uri,
                "backend": self.backend,
            },
        )


@dataclass
class QueryAddedEvent(Event):
    """Event emitted when a query block is added."""

    query_id: int = 0
    text: str = ""

    def __post_init__(self):
        """Initialize event type and data."""
        self.event_type = EventType.QUERY_ADDED.value
        self.data.update({"query_id": self.query_id, "text": self.text})


@dataclass
class QueryUpdatedEvent(Event):
    """Event emitted when a query's text is edited."""

    query_id: int = 0
    text: str = ""

    def __post_init__(self):
        """Initialize event type and data."""
        self.event_type = EventType.QUERY_UPDATED.value
        self.data.update({"query_id": self.query_id, "text": self.text})


@dataclass
class QueryStartedEvent(Event):
    """Event emitted when a query starts executing."""

    query_id: int = 0
    backend: str | None = None

    def __post_init__(self):
        """Initialize event type and data."""
        self.event_type = EventType.QUERY_STARTED.value
        self.data.update({"query_id": self.query_id, "backend": self.backend})


@dataclass
class QueryCompletedEvent(Event):
    """Event emitted when a query execution reaches a terminal state."""

    query_id: int = 0
    success: bool = False
    result: str = ""

    def __post_init__(self):
        """Initialize event type and data."""
        self.event_type = EventType.QUERY_COMPLETED.value
        self.data.update(
            {
                "query_id": self.query_id,
                "success": self.success,
                "result": self.result,
            },
        )


@dataclass
class NotebookLoadedEvent(Event):
    """Event emitted after a notebook file is read."""

    path: str = ""
    query_count: int = 0

    def __post_init__(self):
        """Initialize event type and data."""
        self.event_type = EventType.NOTEBOOK_LOADED.value
        self.data.update({"path": self.path, "query_count": self.query_count})


@dataclass
class NotebookSavedEvent(Event):
    """Event emitted after a notebook file is written."""

    path: str = ""

    def __post_init__(self):
        """Initialize event type and data."""
        self.event_type = EventType.NOTEBOOK_SAVED.value
        self.data.update({"path": self.path})


@dataclass
class NotebookSaveFailedEvent(Event):
    """Event emitted when a notebook file cannot be written."""

    path: str = ""
    error: str = ""

    def __post_init__(self):
        """Initialize event type and data."""
        self.event_type = EventType.NOTEBOOK_SAVE_FAILED.value
        self.data.update({"path": self.path, "error": self.error})


class EventHandler(ABC):
    """Base class for event handlers."""

    def __init__(self, name: str):
        """Initialize event handler."""
        self.name = name
        self.logger = get_logger(f"event_handler.{name}")

    @abstractmethod
    async def handle(self, event: Event) -> None:
        """Handle an event."""

    def can_handle(self, _event: Event) -> bool:
        """Check if this handler can handle the event."""
        return True


class EventBus:
    """Event bus for managing events and handlers."""

    def __init__(self, max_queue_size: int = 1000, max_replay_events: int = 200):
        """Initialize event bus.

        Args:
            max_queue_size: Maximum size of event queue
            max_replay_events: Number of recent events kept for replay

        """
        self.max_queue_size = max_queue_size
        self.handlers: dict[str, list[EventHandler]] = {}
        self.event_queue: asyncio.Queue[Event] | None = None
        self.replay_buffer: list[Event] = []
        self.max_replay_events = max_replay_events
        self.running = False
        self.logger = get_logger(__name__)
        self._task: asyncio.Task | None = None

        self.stats = {
            "events_processed": 0,
            "events_dropped": 0,
            "handlers_registered": 0,
        }

    def register_handler(self, event_type: str, handler: EventHandler) -> None:
        """Register an event handler.

        Args:
            event_type: Type of event to handle, or ``"*"`` for all events
            handler: Handler instance

        """
        self.handlers.setdefault(event_type, []).append(handler)
        self.stats["handlers_registered"] += 1
        self.logger.debug(
            "Registered handler '%s' for event type '%s'",
            handler.name,
            event_type,
        )

    def unregister_handler(self, event_type: str, handler: EventHandler) -> None:
        """Unregister an event handler."""
        handlers = self.handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
            self.logger.debug(
                "Unregistered handler '%s' for event type '%s'",
                handler.name,
                event_type,
            )

    def publish(self, event: Event) -> None:
        """Queue an event without awaiting (for synchronous callers).

        Events are recorded in the replay buffer even when the bus is not
        running; they are only dispatched to handlers while it runs.
        """
        self.replay_buffer.append(event)
        if len(self.replay_buffer) > self.max_replay_events:
            self.replay_buffer.pop(0)

        if not self.running or self.event_queue is None:
            return

        try:
            self.event_queue.put_nowait(event)
        except asyncio.QueueFull:
            self.stats["events_dropped"] += 1
            self.logger.warning("Event queue full, dropping event: %s", event.event_type)

    async def emit(self, event: Event) -> None:
        """Emit an event."""
        self.publish(event)

    async def start(self) -> None:
        """Start the event bus on the running loop."""
        if self.running:
            return

        self.event_queue = asyncio.Queue(maxsize=self.max_queue_size)
        self.running = True
        self._task = asyncio.create_task(self._process_events())
        self.logger.debug("Event bus started")

    async def stop(self) -> None:
        """Stop the event bus, dispatching events that are already queued."""
        if not self.running:
            return

        if self.event_queue is not None:
            await self.event_queue.join()

        self.running = False
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        self.logger.debug("Event bus stopped")

    async def _process_events(self) -> None:
        """Process events from the queue."""
        assert self.event_queue is not None
        while self.running:
            event = await self.event_queue.get()
            try:
                await self._handle_event(event)
            finally:
                self.event_queue.task_done()

    async def _handle_event(self, event: Event) -> None:
        """Handle a single event."""
        handlers = self.handlers.get(event.event_type, []) + self.handlers.get("*", [])
        processable = [h for h in handlers if h.can_handle(event)]
        if not processable:
            self.logger.debug("No handlers registered for event: %s", event.event_type)
            return

        await asyncio.gather(
            *(self._handle_with_handler(event, h) for h in processable),
        )
        self.stats["events_processed"] += 1

    async def _handle_with_handler(self, event: Event, handler: EventHandler) -> None:
        """Handle event with a specific handler."""
        try:
            await handler.handle(event)
        except Exception:
            self.logger.exception(
                "Handler '%s' failed for event '%s'",
                handler.name,
                event.event_type,
            )

    def get_replay_events(
        self,
        event_type: str | None = None,
        limit: int = 100,
    ) -> list[Event]:
        """Get events from replay buffer.

        Args:
            event_type: Filter by event type
            limit: Maximum number of events to return

        """
        events = self.replay_buffer
        if event_type:
            events = [e for e in events if e.event_type == event_type]
        return events[-limit:] if limit > 0 else list(events)

    def get_stats(self) -> dict[str, Any]:
        """Get event bus statistics."""
        return {
            "running": self.running,
            "queue_size": self.event_queue.qsize() if self.event_queue else 0,
            "events_processed": self.stats["events_processed"],
            "events_dropped": self.stats["events_dropped"],
            "handlers_registered": self.stats["handlers_registered"],
            "replay_buffer_size": len(self.replay_buffer),
        }


# Global event bus instance
_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get the global event bus."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


async def emit_event(event: Event) -> None:
    """Emit an event to the global event bus."""
    await get_event_bus().emit(event)
