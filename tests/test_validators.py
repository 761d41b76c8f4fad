"""Tests for the Validator base class, narrow() and builtin validators."""

from typing import Optional

import pytest

from dialogwire.updates import CallbackQuery, Message, Update
from dialogwire.validators import (
    CallbackQueryValidator,
    MessageValidator,
    TextMessage,
    TextMessageValidator,
    Validator,
    narrow,
)


def _update(text="hi"):
    return Update.model_validate({
        "update_id": 1,
        "message": {"message_id": 3, "chat": {"id": 5}, "from": {"id": 6}, "text": text},
    })


class Shouted(Message):
    pass


class ShoutValidator(Validator[Shouted]):
    def __init__(self, message: TextMessage):
        self.message = message

    def validate(self) -> Optional[Shouted]:
        return None


class Plain:
    def __init__(self, value):
        self.value = value


class PlainChild(Plain):
    pass


def test_produced_type_read_from_generic_parameter():
    assert ShoutValidator.produces is Shouted
    assert TextMessageValidator.produces is TextMessage
    assert MessageValidator.produces is Message


def test_explicit_produces_wins():
    class Explicit(Validator):
        produces = Shouted

        def validate(self):
            return None

    assert Explicit.produces is Shouted


# -------------------------------------------------------------------
# narrow
# -------------------------------------------------------------------

class TestNarrow:

    def test_pydantic_fields_carried_over(self):
        message = _update("hello").message
        narrowed = narrow(message, TextMessage)
        assert isinstance(narrowed, TextMessage)
        assert narrowed.text == "hello"
        assert narrowed.from_user.id == 6
        assert narrowed.chat.id == 5

    def test_plain_object_attributes_carried_over(self):
        narrowed = narrow(Plain(3), PlainChild)
        assert type(narrowed) is PlainChild
        assert narrowed.value == 3

    def test_rejects_non_child(self):
        with pytest.raises(TypeError):
            narrow(Plain(1), TextMessage)

    def test_rejects_sibling(self):
        text_message = narrow(_update().message, TextMessage)
        with pytest.raises(TypeError):
            narrow(text_message, Shouted)


# -------------------------------------------------------------------
# Builtins
# -------------------------------------------------------------------

class TestBuiltins:

    def test_message_validator(self):
        update = _update()
        assert MessageValidator(update).validate() is update.message
        assert MessageValidator(Update(update_id=2)).validate() is None

    def test_callback_query_validator(self):
        update = Update.model_validate({
            "update_id": 1,
            "callback_query": {"id": "c", "from": {"id": 1}, "data": "d"},
        })
        assert isinstance(CallbackQueryValidator(update).validate(), CallbackQuery)
        assert CallbackQueryValidator(_update()).validate() is None

    def test_text_message_validator(self):
        assert TextMessageValidator(_update("x").message).validate().text == "x"
        assert TextMessageValidator(_update("").message).validate() is None
        assert TextMessageValidator(_update(None).message).validate() is None
