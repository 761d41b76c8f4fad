"""Pydantic models for outbound messages.

Commands put these on a Response; the dispatcher forwards them to the
transport in order without interpreting them. The ``type`` tag lets a
transport pick the platform call for each one.
"""

from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel


# Reply markup is platform specific (inline keyboards, reply keyboards),
# so it is carried through as plain JSON-able data.
ReplyMarkup = Dict[str, Any]


class TextReply(BaseModel):
    type: Literal["text"] = "text"
    chat_id: int
    text: str
    parse_mode: Optional[str] = None
    disable_web_page_preview: bool = False
    disable_notification: bool = False
    reply_to_message_id: Optional[int] = None
    reply_markup: Optional[ReplyMarkup] = None


class EditText(BaseModel):
    type: Literal["edit_text"] = "edit_text"
    chat_id: int
    message_id: int
    text: str
    parse_mode: Optional[str] = None
    reply_markup: Optional[ReplyMarkup] = None


class AnswerCallback(BaseModel):
    type: Literal["answer_callback"] = "answer_callback"
    callback_query_id: str
    text: Optional[str] = None
    show_alert: bool = False


class DocumentReply(BaseModel):
    """A file sent by platform file id or URL."""

    type: Literal["document"] = "document"
    chat_id: int
    document: str
    caption: Optional[str] = None
    reply_to_message_id: Optional[int] = None
    reply_markup: Optional[ReplyMarkup] = None


class PhotoReply(BaseModel):
    type: Literal["photo"] = "photo"
    chat_id: int
    photo: str
    caption: Optional[str] = None
    reply_to_message_id: Optional[int] = None
    reply_markup: Optional[ReplyMarkup] = None


class StickerReply(BaseModel):
    type: Literal["sticker"] = "sticker"
    chat_id: int
    sticker: str


class EditMarkup(BaseModel):
    type: Literal["edit_markup"] = "edit_markup"
    chat_id: int
    message_id: int
    reply_markup: Optional[ReplyMarkup] = None


OutboundMessage = Union[
    TextReply,
    EditText,
    AnswerCallback,
    DocumentReply,
    PhotoReply,
    StickerReply,
    EditMarkup,
]
