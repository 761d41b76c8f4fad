"""Base classes for the command framework.

A command is the unit of behaviour chosen for one update. Commands
never look their dependencies up themselves: every constructor
parameter is annotated with the type it needs (the raw Update, the
ReadOnlyClient, a validated type such as TextMessage, or another
command/validator type) and the resolver builds the command only when
every parameter can be supplied for the current update.

Key classes:
    Command: Any executable command. A plain Command subclass is
        continuation-only: it runs only when a previous Response
        registered it for the conversation.
    StaticCommand: Evaluated against every update without a matching
        continuation; selects itself via suitable().
    StartCommand: StaticCommand that only opens conversations.
    MessageStaticCommand: StaticCommand restricted to message updates.
    CommandKind: Variant tag recorded at registration.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..response import Response
    from ..updates import Message, Update


class CommandKind(str, Enum):
    """Dispatch variant of a registered command type."""
    CONTINUATION = "continuation"  # Reachable only through a Continuation
    STATIC = "static"              # Global, matched by suitable()
    START = "start"                # Global, only when nothing is pending


class Command(ABC):
    """Abstract base class for all commands."""

    @abstractmethod
    async def execute(self) -> "Response":
        """Run the command and describe output plus next steps."""
        ...


class StaticCommand(Command):
    """A command considered for every update lacking a continuation.

    Ordering among static commands: every suitable_first() is checked
    before any suitable(), and every suitable_last() after. Within each
    pass, registration order decides.
    """

    @abstractmethod
    def suitable(self, update: "Update") -> bool:
        """Whether this command should handle ``update``."""
        ...

    def suitable_first(self, update: "Update") -> bool:
        """Claim ``update`` ahead of ordinary suitability checks."""
        return False

    def suitable_last(self, update: "Update") -> bool:
        """Claim ``update`` only when nothing else did."""
        return False


class StartCommand(StaticCommand):
    """Entry point command.

    Only eligible when the conversation has no pending continuations.
    """


class MessageStaticCommand(StaticCommand):
    """Static command that only looks at plain message updates."""

    def suitable(self, update: "Update") -> bool:
        return update.message is not None and self.suitable_message(update.message)

    @abstractmethod
    def suitable_message(self, message: "Message") -> bool:
        ...


def command_kind(command_type: type) -> CommandKind:
    """Derive the dispatch variant from the class hierarchy."""
    if issubclass(command_type, StartCommand):
        return CommandKind.START
    if issubclass(command_type, StaticCommand):
        return CommandKind.STATIC
    return CommandKind.CONTINUATION
