"""Dispatch pipeline: one update in, at most one command executed.

Per update:
    1. derive the conversation key (none: skip straight to step 4)
    2. under the key's lock, fetch the conversation (done entries pruned)
    3. first pending continuation that resolves for the update wins
    4. otherwise static commands: every suitable_first(), then
       suitable(), then suitable_last(), registration order within
       each pass; start commands only when nothing is pending
    5. nothing matched: drop the update
    6. execute the command
    7. apply the Response's next step to the conversation
    8. hand the messages to the transport in a background task

A failing command leaves the conversation exactly as it was (apart
from a one-shot continuation consuming itself) and is reported to the
transport; other conversations are unaffected.

Key classes:
    TurnOutcome: What happened to one update.
    Dispatcher: The pipeline plus the transport polling loop.
"""

import asyncio
from dataclasses import dataclass
from typing import Hashable, Optional, Set, Tuple

import structlog

from .catalog import Catalog
from .commands.base import Command, CommandKind, StaticCommand
from .conversation import Conversation, ConversationStore
from .exceptions import HandlerExecutionError, TransportError
from .messages import OutboundMessage
from .resolver import Resolver
from .response import Continuation, NextKind, Response
from .transport import Transport
from .updates import Update, conversation_key, describe

logger = structlog.get_logger("dialogwire.dispatch")

_STATIC_PASSES = ("suitable_first", "suitable", "suitable_last")


def log_task_exception(task: asyncio.Task):
    """Log exceptions from fire-and-forget tasks instead of silently swallowing them."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc:
        logger.error("background_task_failed", error=str(exc), exc_type=type(exc).__name__)


@dataclass
class TurnOutcome:
    """Result of dispatching one update.

    Attributes:
        update_id: Id of the dispatched update.
        conversation_key: Key the update belonged to, if any.
        handled: Whether a command was selected.
        source: "continuation" or "static" when handled.
        command: The selected command instance.
        response: The command's Response, if it succeeded.
        error: Wrapped failure, if the command raised.
    """
    update_id: int
    conversation_key: Optional[Hashable] = None
    handled: bool = False
    source: Optional[str] = None
    command: Optional[Command] = None
    response: Optional[Response] = None
    error: Optional[HandlerExecutionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Dispatcher:
    """Routes updates to commands and keeps conversation state.

    Args:
        catalog: Registered command/validator types.
        transport: Update source, message sink and read-only client
            handed to commands.
        resolver: Resolver to build commands with. Defaults to one over
            ``catalog`` using the ``compiled`` flag.
        conversations: Conversation store. Defaults to a fresh one.
        compiled: Use compiled builders (ignored if resolver given).
        max_concurrent_updates: Updates processed at once by run().
        notify_errors: Report failed turns to the transport.
    """

    def __init__(
        self,
        catalog: Catalog,
        transport: Transport,
        *,
        resolver: Optional[Resolver] = None,
        conversations: Optional[ConversationStore] = None,
        compiled: bool = True,
        max_concurrent_updates: int = 64,
        notify_errors: bool = True,
    ):
        self.catalog = catalog
        self.transport = transport
        self.resolver = resolver or Resolver(catalog, compiled=compiled)
        self.conversations = conversations or ConversationStore()
        self.max_concurrent_updates = max_concurrent_updates
        self.notify_errors = notify_errors
        self.running = False
        self._tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Single update
    # ------------------------------------------------------------------

    async def dispatch(self, update: Update) -> TurnOutcome:
        """Process one update to completion."""
        key = conversation_key(update)
        logger.debug("update_received", update_id=update.update_id, key=key, info=str(describe(update)))
        if key is None:
            return await self._turn(update, None, None)
        async with self.conversations.lock(key):
            conversation = self.conversations.handlers_for(key)
            return await self._turn(update, key, conversation)

    async def _turn(
        self, update: Update, key: Optional[Hashable], conversation: Optional[Conversation]
    ) -> TurnOutcome:
        outcome = TurnOutcome(update_id=update.update_id, conversation_key=key)

        continuation: Optional[Continuation] = None
        command: Optional[Command] = None
        if conversation is not None:
            selected = self._select_continuation(update, conversation)
            if selected is not None:
                continuation, command = selected
                outcome.source = "continuation"

        if command is None:
            if conversation is not None and conversation.pending and not conversation.use_static:
                logger.debug("static_fallback_disabled", update_id=update.update_id, key=key)
                return outcome
            command = self._select_static(update, conversation)
            if command is None:
                logger.debug("update_unmatched", update_id=update.update_id, key=key)
                return outcome
            outcome.source = "static"

        outcome.handled = True
        outcome.command = command
        command_name = type(command).__name__

        if continuation is not None and continuation.one_shot:
            continuation.mark_done()

        try:
            response = await command.execute()
            if not isinstance(response, Response):
                raise TypeError(f"execute() returned {type(response).__name__}, not Response")
        except Exception as e:
            error = HandlerExecutionError(
                f"{command_name} failed: {e}",
                command=command_name,
                conversation_key=key,
                update_id=update.update_id,
            )
            error.__cause__ = e
            outcome.error = error
            logger.error(
                "command_failed",
                command=command_name,
                key=key,
                update_id=update.update_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            if self.notify_errors:
                await self._report(update, error)
            return outcome

        if continuation is not None:
            continuation.mark_done()
            continuation.supersede_siblings()

        if conversation is not None:
            self._apply(conversation, response)
        elif response.next_step.kind is not NextKind.NONE:
            logger.warning(
                "next_step_without_conversation",
                command=command_name,
                update_id=update.update_id,
            )

        outcome.response = response
        logger.info(
            "turn_handled",
            command=command_name,
            source=outcome.source,
            key=key,
            messages=len(response.messages),
            next_step=response.next_step.kind.value,
        )
        self._deliver(update, response.messages)
        return outcome

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def _select_continuation(
        self, update: Update, conversation: Conversation
    ) -> Optional[Tuple[Continuation, Command]]:
        for continuation in conversation.continuations:
            if continuation.done:
                continue
            command = self.resolver.build(
                update, self.transport, continuation.command_type, continuation.bound
            )
            if command is None:
                continue
            if isinstance(command, StaticCommand) and not self._check(command, "suitable", update):
                continue
            return continuation, command
        return None

    def _select_static(
        self, update: Update, conversation: Optional[Conversation]
    ) -> Optional[Command]:
        kinds = [CommandKind.STATIC]
        if conversation is None or not conversation.pending:
            kinds.append(CommandKind.START)
        commands = self.resolver.candidates(update, self.transport, self.catalog.commands(kinds))
        for predicate in _STATIC_PASSES:
            for command in commands:
                if self._check(command, predicate, update):
                    return command
        return None

    @staticmethod
    def _check(command: Command, predicate: str, update: Update) -> bool:
        try:
            return bool(getattr(command, predicate)(update))
        except Exception as e:
            logger.warning(
                "suitability_check_failed",
                command=type(command).__name__,
                predicate=predicate,
                error=str(e),
            )
            return False

    # ------------------------------------------------------------------
    # Applying responses
    # ------------------------------------------------------------------

    @staticmethod
    def _apply(conversation: Conversation, response: Response) -> None:
        step = response.next_step
        if step.kind is NextKind.FORCED:
            for pending in conversation.continuations:
                pending.mark_done()
            conversation.continuations.append(step.continuations[0].copy())
        elif step.kind is NextKind.CANDIDATES:
            group = [c.copy() for c in step.continuations]
            for continuation in group:
                continuation.siblings = tuple(c for c in group if c is not continuation)
            conversation.continuations.extend(group)
        conversation.use_static = response.use_static

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def _track(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(log_task_exception)
        return task

    def _deliver(self, update: Update, messages: Tuple[OutboundMessage, ...]) -> None:
        if messages:
            self._track(self._send_all(update, messages))

    async def _send_all(self, update: Update, messages: Tuple[OutboundMessage, ...]) -> None:
        for message in messages:
            try:
                await self.transport.send(message)
            except Exception as e:
                logger.warning(
                    "send_failed",
                    update_id=update.update_id,
                    message_type=getattr(message, "type", type(message).__name__),
                    error=str(e),
                )
                if not isinstance(e, TransportError):
                    e = TransportError(str(e), update_id=update.update_id)
                await self._report(update, e)

    async def _report(self, update: Update, error: BaseException) -> None:
        try:
            await self.transport.report_error(update, error)
        except Exception as e:
            logger.error("report_error_failed", error=str(e))

    # ------------------------------------------------------------------
    # Polling loop
    # ------------------------------------------------------------------

    async def _dispatch_guarded(self, update: Update, slots: asyncio.Semaphore) -> None:
        try:
            await self.dispatch(update)
        except Exception as e:
            logger.error(
                "dispatch_error",
                update_id=update.update_id,
                error=str(e),
                error_type=type(e).__name__,
            )
        finally:
            slots.release()

    async def run(self) -> None:
        """Consume transport updates until it closes or stop() is called.

        Each update runs in its own task. At most
        ``max_concurrent_updates`` are in flight; the loop waits for a
        free slot before pulling the next update, which also keeps
        same-conversation updates queued on their lock in arrival order.
        """
        self.running = True
        slots = asyncio.Semaphore(self.max_concurrent_updates)
        try:
            async for update in self.transport.updates():
                if not self.running:
                    break
                await slots.acquire()
                self._track(self._dispatch_guarded(update, slots))
        finally:
            await self.drain()
            self.running = False

    async def drain(self) -> None:
        """Wait for in-flight dispatches and deliveries to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def stop(self) -> None:
        self.running = False
