"""Custom exception hierarchy for dialogwire.

Registration-time defects, handler faults, delivery failures and
configuration problems each get their own class so callers can tell
a broken command type apart from a broken turn.

Resolution misses (a validator rejecting its input, a dependency that
cannot be built for this update) are not exceptions at all: they are
expressed as ``None`` and never raised.
"""

from enum import Enum
from typing import Any, Hashable, Optional, Sequence


class ErrorCategory(str, Enum):
    """Classification of errors for retry decisions."""
    TRANSIENT = "transient"            # Delivery hiccups, flood limits
    PERMANENT = "permanent"            # Broken handler or handler type
    INFRASTRUCTURE = "infrastructure"  # Missing config, unimportable modules


class DialogwireError(Exception):
    """Base exception for all dialogwire errors.

    Subclasses set ``default_category`` and ``default_module``; both can
    be overridden per instance.

    Attributes:
        message: Human-readable error description.
        category: Error classification for retry/escalation decisions.
        module: Originating module name (e.g. "catalog").
        context: Arbitrary key-value pairs for structured logging.
    """

    default_category = ErrorCategory.PERMANENT
    default_module: Optional[str] = None

    def __init__(
        self,
        message: str = "",
        *,
        category: Optional[ErrorCategory] = None,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.message = message
        self.category = category or self.default_category
        self.module = module or self.default_module
        self.context = context
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return self.category == ErrorCategory.TRANSIENT

    def __str__(self) -> str:
        text = self.message or type(self).__name__
        if self.module:
            text += f" [module={self.module}]"
        if self.context:
            text += " (" + ", ".join(f"{k}={v}" for k, v in self.context.items()) + ")"
        return text

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.message!r}, "
            f"category={self.category.value!r}, module={self.module!r})"
        )


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

class RegistrationError(DialogwireError):
    """A command or validator type cannot be registered.

    Structural defects: abstract types, constructor parameters that can
    never be resolved, duplicate validators. Fatal to the offending type
    only.

    Attributes:
        type_name: Qualified name of the rejected type.
    """

    default_module = "catalog"

    def __init__(self, message: str = "", *, type_name: Optional[str] = None, **kwargs: Any) -> None:
        self.type_name = type_name
        super().__init__(message, **kwargs)


class CyclicDependencyError(RegistrationError):
    """A requirement graph loops back on itself.

    Attributes:
        cycle: Type names along the loop, first and last equal.
    """

    def __init__(self, message: str = "", *, cycle: Optional[Sequence[str]] = None, **kwargs: Any) -> None:
        self.cycle = list(cycle or ())
        super().__init__(message, **kwargs)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

class HandlerExecutionError(DialogwireError):
    """A selected command raised while executing.

    The original exception is chained as ``__cause__``.

    Attributes:
        command: Class name of the failing command.
        conversation_key: Key of the conversation whose turn failed.
    """

    default_module = "dispatcher"

    def __init__(
        self,
        message: str = "",
        *,
        command: Optional[str] = None,
        conversation_key: Optional[Hashable] = None,
        **kwargs: Any,
    ) -> None:
        self.command = command
        self.conversation_key = conversation_key
        super().__init__(message, **kwargs)


class TransportError(DialogwireError):
    """Sending a message through the transport failed."""

    default_category = ErrorCategory.TRANSIENT
    default_module = "transport"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class ConfigurationError(DialogwireError):
    """Invalid or missing configuration.

    Attributes:
        setting_name: The offending settings key.
    """

    default_category = ErrorCategory.INFRASTRUCTURE
    default_module = "config"

    def __init__(self, message: str = "", *, setting_name: Optional[str] = None, **kwargs: Any) -> None:
        self.setting_name = setting_name
        super().__init__(message, **kwargs)
