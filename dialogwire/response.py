"""Response model returned by commands.

A Response is immutable: every builder method returns a new Response.
It carries the outbound messages for this turn and the next-step
description for the conversation:

    NONE        nothing new is expected
    FORCED      exactly one continuation; everything pending before it
                is superseded
    CANDIDATES  several continuations; the first one to handle a future
                update supersedes its siblings

Key classes:
    Continuation: A command type waiting for the conversation's next
        update, optionally with constructor arguments bound in advance.
    NextKind / NextStep: Tagged next-step description.
    Response: Messages + next step + static fallback flag.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple, Type, Union

from .commands.base import Command
from .messages import (
    AnswerCallback,
    DocumentReply,
    EditMarkup,
    EditText,
    OutboundMessage,
    PhotoReply,
    ReplyMarkup,
    StickerReply,
    TextReply,
)


class Continuation:
    """A pending command registered for one conversation.

    The command type is resolved against the conversation's next update
    like any other command; ``bound`` supplies constructor arguments the
    previous turn already knows (and may cover parameters that are not
    injectable at all, e.g. a plain ``str``).

    Args:
        command_type: Command class to build for the next update.
        one_shot: Mark done as soon as it is selected, even if the
            command then fails. Otherwise it is marked done only after
            a successful execution.
        **bound: Constructor arguments supplied up front.
    """

    def __init__(self, command_type: Type[Command], *, one_shot: bool = False, **bound: Any):
        self.command_type = command_type
        self.one_shot = one_shot
        self.bound: Dict[str, Any] = dict(bound)
        self.done = False
        self.siblings: Tuple["Continuation", ...] = ()

    @property
    def bound_names(self) -> FrozenSet[str]:
        return frozenset(self.bound)

    def copy(self) -> "Continuation":
        """Fresh pending copy, so one Response can be returned many times."""
        return Continuation(self.command_type, one_shot=self.one_shot, **self.bound)

    def mark_done(self) -> None:
        self.done = True

    def supersede_siblings(self) -> None:
        for sibling in self.siblings:
            sibling.mark_done()

    def __repr__(self) -> str:
        state = "done" if self.done else "pending"
        return f"Continuation({self.command_type.__name__}, {state}, bound={sorted(self.bound)})"


ContinuationLike = Union[Continuation, Type[Command]]


def _as_continuation(item: ContinuationLike) -> Continuation:
    if isinstance(item, Continuation):
        return item
    if isinstance(item, type) and issubclass(item, Command):
        return Continuation(item)
    raise TypeError(f"Expected Continuation or Command type, got {item!r}")


class NextKind(str, Enum):
    NONE = "none"
    FORCED = "forced"
    CANDIDATES = "candidates"


@dataclass(frozen=True)
class NextStep:
    """What the conversation should expect after this turn."""
    kind: NextKind = NextKind.NONE
    continuations: Tuple[Continuation, ...] = ()


@dataclass(frozen=True)
class Response:
    """Output of one command execution."""

    messages: Tuple[OutboundMessage, ...] = ()
    next_step: NextStep = field(default_factory=NextStep)
    use_static: bool = True

    @classmethod
    def forced(cls, continuation: ContinuationLike, *messages: OutboundMessage) -> "Response":
        """Route the conversation's next update to ``continuation``."""
        step = NextStep(NextKind.FORCED, (_as_continuation(continuation),))
        return cls(messages=tuple(messages), next_step=step)

    @classmethod
    def candidates(cls, *continuations: ContinuationLike) -> "Response":
        """Offer several continuations; the first to match wins."""
        if not continuations:
            return cls()
        items = tuple(_as_continuation(c) for c in continuations)
        return cls(next_step=NextStep(NextKind.CANDIDATES, items))

    def add(self, *messages: OutboundMessage) -> "Response":
        return replace(self, messages=self.messages + tuple(messages))

    def without_static(self) -> "Response":
        """Do not fall back to static commands on the next update.

        Updates that match none of the pending continuations are then
        dropped instead of reaching global commands.
        """
        return replace(self, use_static=False)

    # --- message builders ---

    def send_text(
        self,
        chat_id: int,
        text: str,
        *,
        parse_mode: Optional[str] = None,
        reply_to_message_id: Optional[int] = None,
        reply_markup: Optional[ReplyMarkup] = None,
        disable_web_page_preview: bool = False,
        disable_notification: bool = False,
    ) -> "Response":
        return self.add(TextReply(
            chat_id=chat_id,
            text=text,
            parse_mode=parse_mode,
            reply_to_message_id=reply_to_message_id,
            reply_markup=reply_markup,
            disable_web_page_preview=disable_web_page_preview,
            disable_notification=disable_notification,
        ))

    def edit_text(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        *,
        parse_mode: Optional[str] = None,
        reply_markup: Optional[ReplyMarkup] = None,
    ) -> "Response":
        return self.add(EditText(
            chat_id=chat_id,
            message_id=message_id,
            text=text,
            parse_mode=parse_mode,
            reply_markup=reply_markup,
        ))

    def answer_callback(self, callback_query_id: str, text: Optional[str] = None) -> "Response":
        return self.add(AnswerCallback(callback_query_id=callback_query_id, text=text))

    def send_document(
        self,
        chat_id: int,
        document: str,
        *,
        caption: Optional[str] = None,
        reply_to_message_id: Optional[int] = None,
        reply_markup: Optional[ReplyMarkup] = None,
    ) -> "Response":
        return self.add(DocumentReply(
            chat_id=chat_id,
            document=document,
            caption=caption,
            reply_to_message_id=reply_to_message_id,
            reply_markup=reply_markup,
        ))

    def send_photo(
        self,
        chat_id: int,
        photo: str,
        *,
        caption: Optional[str] = None,
        reply_to_message_id: Optional[int] = None,
        reply_markup: Optional[ReplyMarkup] = None,
    ) -> "Response":
        return self.add(PhotoReply(
            chat_id=chat_id,
            photo=photo,
            caption=caption,
            reply_to_message_id=reply_to_message_id,
            reply_markup=reply_markup,
        ))

    def send_sticker(self, chat_id: int, sticker: str) -> "Response":
        return self.add(StickerReply(chat_id=chat_id, sticker=sticker))

    def edit_markup(
        self, chat_id: int, message_id: int, reply_markup: Optional[ReplyMarkup]
    ) -> "Response":
        return self.add(EditMarkup(
            chat_id=chat_id, message_id=message_id, reply_markup=reply_markup
        ))
