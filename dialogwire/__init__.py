"""dialogwire: conversational bot dispatch engine.

Picks one command per inbound update, builds it from validator-gated
dependencies, runs it and tracks which commands each conversation
expects next.
"""

from .catalog import Catalog
from .commands import (
    Command,
    CommandKind,
    MessageStaticCommand,
    StartCommand,
    StaticCommand,
)
from .conversation import Conversation, ConversationStore
from .dispatcher import Dispatcher, TurnOutcome
from .exceptions import (
    ConfigurationError,
    CyclicDependencyError,
    DialogwireError,
    ErrorCategory,
    HandlerExecutionError,
    RegistrationError,
    TransportError,
)
from .resolver import Resolver
from .response import Continuation, NextKind, NextStep, Response
from .transport import BotIdentity, MemoryTransport, ReadOnlyClient, Transport
from .updates import Update, conversation_key
from .validators import TextMessage, Validator, narrow

__all__ = [
    # Commands
    "Command",
    "CommandKind",
    "MessageStaticCommand",
    "StartCommand",
    "StaticCommand",
    # Validators
    "Validator",
    "TextMessage",
    "narrow",
    # Responses
    "Continuation",
    "NextKind",
    "NextStep",
    "Response",
    # Resolution
    "Catalog",
    "Resolver",
    # Dispatch
    "Conversation",
    "ConversationStore",
    "Dispatcher",
    "TurnOutcome",
    # Transport
    "BotIdentity",
    "MemoryTransport",
    "ReadOnlyClient",
    "Transport",
    "Update",
    "conversation_key",
    # Errors
    "ConfigurationError",
    "CyclicDependencyError",
    "DialogwireError",
    "ErrorCategory",
    "HandlerExecutionError",
    "RegistrationError",
    "TransportError",
]
