"""Command framework for dialogwire.

Provides the Command ABC and its static/start variants.
"""

from .base import (
    Command,
    CommandKind,
    MessageStaticCommand,
    StartCommand,
    StaticCommand,
    command_kind,
)

__all__ = [
    "Command",
    "CommandKind",
    "MessageStaticCommand",
    "StartCommand",
    "StaticCommand",
    "command_kind",
]
