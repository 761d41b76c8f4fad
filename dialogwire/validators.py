"""Validators: gates that turn one resolved value into a narrower one.

A validator declares its inputs in its constructor (resolved the same
way as command dependencies) and produces its output from validate().
Returning None rejects the input. Rejection is the normal, expected
path and must never raise.

Exactly one validator may be registered per produced type. A command
asking for that type in its constructor therefore gets whatever the
validator produced, or is not built at all.

Key classes:
    Validator: Generic base class; Validator[T] produces T.
    TextMessage: Message narrowed to ones carrying non-empty text.

Key functions:
    narrow: Re-create a value as an instance of a direct subclass.
"""

from abc import ABC, abstractmethod
from typing import ClassVar, Generic, Optional, Type, TypeVar, get_args, get_origin

from pydantic import BaseModel

from .updates import CallbackQuery, Message, Update

T = TypeVar("T")


class Validator(ABC, Generic[T]):
    """Base class for validators.

    The produced type is taken from the generic parameter
    (``class HelloValidator(Validator[HelloMessage])``). Set
    ``produces`` explicitly when the parameter cannot be read, e.g.
    for validators produced by a factory.
    """

    produces: ClassVar[Optional[type]] = None

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if cls.__dict__.get("produces") is not None:
            return
        for base in cls.__dict__.get("__orig_bases__", ()):
            if get_origin(base) is Validator:
                args = get_args(base)
                if args and isinstance(args[0], type):
                    cls.produces = args[0]
                break

    @abstractmethod
    def validate(self) -> Optional[T]:
        """Return the narrowed value, or None to reject."""
        ...


def narrow(value, subclass: Type[T]) -> T:
    """Build a ``subclass`` instance carrying all fields of ``value``.

    Lets a validator hand out a more specific type (``HelloMessage``)
    than the one it received (``Message``) so commands can depend on
    the specific type.

    Raises:
        TypeError: If ``subclass`` does not directly extend type(value).
    """
    if type(value) not in subclass.__bases__:
        raise TypeError(f"{subclass.__name__} is not a child of {type(value).__name__}")
    if isinstance(value, BaseModel):
        return subclass.model_validate(value.model_dump(by_alias=True))
    narrowed = subclass.__new__(subclass)
    narrowed.__dict__.update(vars(value))
    return narrowed


# ---------------------------------------------------------------------------
# Builtin validators
# ---------------------------------------------------------------------------

class TextMessage(Message):
    """A message known to carry non-empty text."""


class MessageValidator(Validator[Message]):
    def __init__(self, update: Update):
        self.update = update

    def validate(self) -> Optional[Message]:
        return self.update.message


class CallbackQueryValidator(Validator[CallbackQuery]):
    def __init__(self, update: Update):
        self.update = update

    def validate(self) -> Optional[CallbackQuery]:
        return self.update.callback_query


class TextMessageValidator(Validator[TextMessage]):
    def __init__(self, message: Message):
        self.message = message

    def validate(self) -> Optional[TextMessage]:
        if not self.message.text:
            return None
        return narrow(self.message, TextMessage)


BUILTIN_VALIDATORS = (MessageValidator, CallbackQueryValidator, TextMessageValidator)
