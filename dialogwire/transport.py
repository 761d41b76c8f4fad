"""Transport collaborator interfaces.

The dispatch core never talks to the chat platform directly. It pulls
updates from a Transport, pushes outbound messages to it and reports
failed turns back to it. Commands only ever see the read-only side
(ReadOnlyClient), which is injected like any other dependency.

Key classes:
    BotIdentity: Who the bot is on the platform.
    ReadOnlyClient: Query-only handle injectable into commands.
    Transport: Full collaborator used by the dispatcher.
    MemoryTransport: Queue-backed transport for tests and embedding.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional, Tuple

import structlog

from .messages import OutboundMessage
from .updates import Update

logger = structlog.get_logger("dialogwire.transport")


@dataclass(frozen=True)
class BotIdentity:
    """Bot account info reported by the platform."""
    id: int
    username: str
    first_name: str = ""


class ReadOnlyClient(ABC):
    """Query-only view of the transport.

    This is the type commands and validators annotate to receive the
    client. It deliberately has no send operation: output goes through
    the Response.
    """

    @abstractmethod
    async def get_me(self) -> BotIdentity:
        """Return the bot's own identity."""
        ...


class Transport(ReadOnlyClient):
    """Receives updates from and delivers messages to the chat platform."""

    @abstractmethod
    def updates(self) -> AsyncIterator[Update]:
        """Yield inbound updates until the transport closes."""
        ...

    @abstractmethod
    async def send(self, message: OutboundMessage) -> None:
        """Deliver one outbound message. Raise TransportError on failure."""
        ...

    async def report_error(self, update: Optional[Update], error: BaseException) -> None:
        """Called when a turn or a delivery fails. Logs by default."""
        logger.error(
            "transport_error_reported",
            update_id=update.update_id if update else None,
            error=str(error),
            error_type=type(error).__name__,
        )


_CLOSED = object()


class MemoryTransport(Transport):
    """In-process transport backed by an asyncio.Queue.

    Updates are fed with push(); everything sent is recorded in ``sent``
    and every reported failure in ``errors``.
    """

    def __init__(self, identity: Optional[BotIdentity] = None):
        self.identity = identity or BotIdentity(id=0, username="dialogwire_bot")
        self.sent: List[OutboundMessage] = []
        self.errors: List[Tuple[Optional[Update], BaseException]] = []
        self._queue: asyncio.Queue = asyncio.Queue()

    async def get_me(self) -> BotIdentity:
        return self.identity

    def push(self, update: Update) -> None:
        self._queue.put_nowait(update)

    def close(self) -> None:
        """Stop the updates() iterator once queued updates are consumed."""
        self._queue.put_nowait(_CLOSED)

    async def updates(self) -> AsyncIterator[Update]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item

    async def send(self, message: OutboundMessage) -> None:
        self.sent.append(message)

    async def report_error(self, update: Optional[Update], error: BaseException) -> None:
        self.errors.append((update, error))
        await super().report_error(update, error)
