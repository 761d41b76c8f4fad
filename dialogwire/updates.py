"""Pydantic models for inbound chat updates.

An Update is one unit received from the chat platform. Exactly one of
its payload fields is populated; ``Update.kind`` reports which.

Key functions:
    conversation_key: Stable grouping key (sender id, else chat id).
    describe: Flatten an update into an UpdateInfo for log lines.
"""

from enum import Enum
from typing import List, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field


class UpdateKind(str, Enum):
    """Which payload an Update carries."""
    MESSAGE = "message"
    EDITED_MESSAGE = "edited_message"
    CALLBACK_QUERY = "callback_query"
    INLINE_QUERY = "inline_query"
    CHANNEL_POST = "channel_post"
    UNKNOWN = "unknown"


class MessageKind(str, Enum):
    """Content classification of a Message."""
    TEXT = "text"
    STICKER = "sticker"
    PHOTO = "photo"
    DOCUMENT = "document"
    CONTACT = "contact"
    OTHER = "other"


class User(BaseModel):
    """A chat platform account (human or bot)."""

    id: int
    is_bot: bool = False
    first_name: str = ""
    last_name: Optional[str] = None
    username: Optional[str] = None


class Chat(BaseModel):
    """A private chat, group or channel."""

    id: int
    type: str = "private"
    title: Optional[str] = None
    username: Optional[str] = None


class Sticker(BaseModel):
    file_id: str
    set_name: Optional[str] = None
    emoji: Optional[str] = None


class PhotoSize(BaseModel):
    file_id: str
    width: int = 0
    height: int = 0


class Document(BaseModel):
    file_id: str
    file_name: Optional[str] = None
    mime_type: Optional[str] = None


class Contact(BaseModel):
    phone_number: str
    first_name: str = ""
    last_name: Optional[str] = None


class Message(BaseModel):
    """A message in a chat.

    ``from`` is a Python keyword, so the sender lives in ``from_user``
    and is populated from either name.
    """

    model_config = ConfigDict(populate_by_name=True)

    message_id: int
    chat: Chat
    from_user: Optional[User] = Field(default=None, alias="from")
    date: int = 0
    text: Optional[str] = None
    caption: Optional[str] = None
    sticker: Optional[Sticker] = None
    photo: List[PhotoSize] = Field(default_factory=list)
    document: Optional[Document] = None
    contact: Optional[Contact] = None
    reply_to_message_id: Optional[int] = None

    @property
    def kind(self) -> MessageKind:
        if self.text is not None:
            return MessageKind.TEXT
        if self.sticker is not None:
            return MessageKind.STICKER
        if self.photo:
            return MessageKind.PHOTO
        if self.document is not None:
            return MessageKind.DOCUMENT
        if self.contact is not None:
            return MessageKind.CONTACT
        return MessageKind.OTHER


class CallbackQuery(BaseModel):
    """An inline keyboard button press."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    from_user: User = Field(..., alias="from")
    message: Optional[Message] = None
    data: Optional[str] = None


class InlineQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    from_user: Optional[User] = Field(default=None, alias="from")
    query: str = ""


class Update(BaseModel):
    """One inbound event from the chat platform."""

    update_id: int
    message: Optional[Message] = None
    edited_message: Optional[Message] = None
    callback_query: Optional[CallbackQuery] = None
    inline_query: Optional[InlineQuery] = None
    channel_post: Optional[Message] = None

    @property
    def kind(self) -> UpdateKind:
        if self.message is not None:
            return UpdateKind.MESSAGE
        if self.edited_message is not None:
            return UpdateKind.EDITED_MESSAGE
        if self.callback_query is not None:
            return UpdateKind.CALLBACK_QUERY
        if self.inline_query is not None:
            return UpdateKind.INLINE_QUERY
        if self.channel_post is not None:
            return UpdateKind.CHANNEL_POST
        return UpdateKind.UNKNOWN


class UpdateInfo(NamedTuple):
    """Flattened view of an update used for logging."""
    kind: UpdateKind
    message_kind: Optional[MessageKind]
    from_user: Optional[User]
    chat: Optional[Chat]
    from_name: Optional[str]
    contents: str

    def __str__(self) -> str:
        message_kind = self.message_kind.value if self.message_kind else "-"
        return f"{self.kind.value} {message_kind} | {self.from_name} {self.contents}"


def _message_contents(message: Message) -> str:
    kind = message.kind
    if kind is MessageKind.TEXT:
        return message.text or ""
    if kind is MessageKind.STICKER:
        return message.sticker.set_name or ""
    if kind in (MessageKind.PHOTO, MessageKind.DOCUMENT):
        return message.caption or ""
    if kind is MessageKind.CONTACT:
        contact = message.contact
        return f"{contact.first_name} {contact.last_name or ''} {contact.phone_number}"
    return ""


def describe(update: Update) -> UpdateInfo:
    """Extract sender, chat and a content summary from any update kind."""
    kind = update.kind
    if kind in (UpdateKind.MESSAGE, UpdateKind.EDITED_MESSAGE):
        message = update.message or update.edited_message
        sender = message.from_user
        return UpdateInfo(
            kind, message.kind, sender, message.chat,
            sender.username if sender else None,
            _message_contents(message),
        )
    if kind is UpdateKind.CALLBACK_QUERY:
        query = update.callback_query
        chat = query.message.chat if query.message else None
        return UpdateInfo(
            kind, None, query.from_user, chat,
            query.from_user.username, query.data or "",
        )
    if kind is UpdateKind.INLINE_QUERY:
        query = update.inline_query
        sender = query.from_user
        return UpdateInfo(
            kind, None, sender, None,
            sender.username if sender else None, query.query,
        )
    if kind is UpdateKind.CHANNEL_POST:
        post = update.channel_post
        return UpdateInfo(
            kind, post.kind, None, post.chat, post.chat.title,
            _message_contents(post),
        )
    return UpdateInfo(kind, None, None, None, None, "")


def conversation_key(update: Update) -> Optional[int]:
    """Return the key grouping this update with its conversation.

    The sender's id when known, otherwise the chat id, otherwise None
    (e.g. unknown update kinds). Updates without a key never reach
    continuation handlers.
    """
    info = describe(update)
    if info.from_user is not None:
        return info.from_user.id
    if info.chat is not None:
        return info.chat.id
    return None
