from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable
import asyncio
import logging


@runtime_checkable
class Connection(Protocol):
    """
    Transport-neutral handle of one live connection.
    The WebSocket router wraps starlette's WebSocket in this shape; tests use a recorder.
    """
    @property
    def id(self) -> str:
        ...

    async def send_event(self, event: str, data: dict[str, Any]) -> None:
        ...


@dataclass(frozen=True)
class OutboundEvent:
    """
    One event addressed either to a single connection or broadcast to every open one.
    Attributes:
        name: Event name, e.g. "new-message"
        payload: JSON-serializable body
        target: Destination connection; None means broadcast
        exclude: Connection skipped by a broadcast
    """
    name: str
    payload: dict[str, Any] = field(default_factory=dict)
    target: Connection | None = None
    exclude: Connection | None = None

    @classmethod
    def to(cls, target: Connection, name: str, payload: dict[str, Any]) -> "OutboundEvent":
        return cls(name=name, payload=payload, target=target)

    @classmethod
    def broadcast(cls, name: str, payload: dict[str, Any], exclude: Connection | None = None) -> "OutboundEvent":
        return cls(name=name, payload=payload, exclude=exclude)

    @property
    def is_broadcast(self) -> bool:
        return self.target is None


class EventDispatcher:
    """
    Delivers outbound events to connections.

    Each attached connection gets its own FIFO queue drained by a writer task,
    so `deliver` never waits on a socket. A slow or stalled peer only backs up
    its own queue; a failed send is logged and skipped.
    """
    def __init__(self, logger: logging.Logger | None = None):
        self._connections: dict[str, Connection] = {}
        self._queues: dict[str, asyncio.Queue] = {}
        self._writers: dict[str, asyncio.Task] = {}
        self.logger = logger or logging.getLogger(__name__)

    def attach(self, connection: Connection) -> None:
        if connection.id in self._connections:
            return
        queue = asyncio.Queue()
        self._connections[connection.id] = connection
        self._queues[connection.id] = queue
        self._writers[connection.id] = asyncio.create_task(self._write(connection, queue))

    def detach(self, connection: Connection) -> None:
        """ Stop accepting events for connection; what is already queued is still written """
        self._connections.pop(connection.id, None)
        queue = self._queues.pop(connection.id, None)
        if queue is not None:
            queue.put_nowait(None)

    @property
    def open_connections(self) -> list[Connection]:
        return list(self._connections.values())

    def deliver(self, events: list[OutboundEvent]) -> None:
        for event in events:
            if event.is_broadcast:
                for connection in self.open_connections:
                    if event.exclude is not None and connection.id == event.exclude.id:
                        continue
                    self._enqueue(connection, event)
            else:
                self._enqueue(event.target, event)

    async def flush(self, *connections: Connection) -> None:
        """
        Wait until everything queued so far has been written.
        Args:
            connections: Limit the wait to these connections; all open ones by default
        """
        ids = [c.id for c in connections] if connections else list(self._queues)
        queues = [self._queues[i] for i in ids if i in self._queues]
        await asyncio.gather(*(queue.join() for queue in queues))

    async def close(self) -> None:
        writers = list(self._writers.values())
        for connection in self.open_connections:
            self.detach(connection)
        for writer in writers:
            writer.cancel()
        await asyncio.gather(*writers, return_exceptions=True)

    def _enqueue(self, connection: Connection, event: OutboundEvent) -> None:
        queue = self._queues.get(connection.id)
        if queue is None:
            self.logger.debug("Dropping %s event for detached connection %s", event.name, connection.id)
            return
        queue.put_nowait(event)

    async def _write(self, connection: Connection, queue: asyncio.Queue) -> None:
        try:
            while True:
                event = await queue.get()
                try:
                    if event is None:
                        return
                    await self._send(connection, event)
                finally:
                    queue.task_done()
        finally:
            self._writers.pop(connection.id, None)

    async def _send(self, connection: Connection, event: OutboundEvent) -> None:
        try:
            await connection.send_event(event.name, event.payload)
        except Exception as e:
            self.logger.warning(
                "Dropping %s event for connection %s: %s", event.name, connection.id, e
            )
