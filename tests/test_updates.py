"""Tests for update models, describe() and conversation_key()."""

from dialogwire.updates import (
    MessageKind,
    Update,
    UpdateKind,
    conversation_key,
    describe,
)


def _message_update(text="hi", user_id=42, chat_id=-100, **message):
    payload = {
        "message_id": 1,
        "chat": {"id": chat_id, "type": "group", "title": "Group"},
        "text": text,
        **message,
    }
    if user_id is not None:
        payload["from"] = {"id": user_id, "first_name": "Ann", "username": "ann"}
    return Update.model_validate({"update_id": 7, "message": payload})


# -------------------------------------------------------------------
# Parsing
# -------------------------------------------------------------------

class TestParsing:

    def test_sender_read_from_wire_name(self):
        update = _message_update()
        assert update.message.from_user.id == 42
        assert update.kind is UpdateKind.MESSAGE

    def test_sender_accepted_by_field_name(self):
        update = Update.model_validate({
            "update_id": 1,
            "message": {"message_id": 1, "chat": {"id": 5}, "from_user": {"id": 9}},
        })
        assert update.message.from_user.id == 9

    def test_unknown_update_kind(self):
        assert Update(update_id=3).kind is UpdateKind.UNKNOWN

    def test_message_kinds(self):
        sticker = _message_update(text=None, sticker={"file_id": "s", "set_name": "cats"})
        photo = _message_update(text=None, photo=[{"file_id": "p"}], caption="look")
        assert sticker.message.kind is MessageKind.STICKER
        assert photo.message.kind is MessageKind.PHOTO
        assert _message_update().message.kind is MessageKind.TEXT


# -------------------------------------------------------------------
# describe
# -------------------------------------------------------------------

class TestDescribe:

    def test_text_message(self):
        info = describe(_message_update(text="hello"))
        assert info.kind is UpdateKind.MESSAGE
        assert info.message_kind is MessageKind.TEXT
        assert info.from_name == "ann"
        assert info.contents == "hello"
        assert "hello" in str(info)

    def test_sticker_contents_is_set_name(self):
        info = describe(_message_update(text=None, sticker={"file_id": "s", "set_name": "cats"}))
        assert info.contents == "cats"

    def test_callback_query_uses_message_chat(self):
        update = Update.model_validate({
            "update_id": 2,
            "callback_query": {
                "id": "cb1",
                "from": {"id": 11, "username": "bob"},
                "message": {"message_id": 5, "chat": {"id": 77}},
                "data": "yes",
            },
        })
        info = describe(update)
        assert info.from_user.id == 11
        assert info.chat.id == 77
        assert info.contents == "yes"

    def test_channel_post_has_no_sender(self):
        update = Update.model_validate({
            "update_id": 4,
            "channel_post": {"message_id": 1, "chat": {"id": -5, "type": "channel", "title": "News"}, "text": "x"},
        })
        info = describe(update)
        assert info.from_user is None
        assert info.from_name == "News"


# -------------------------------------------------------------------
# conversation_key
# -------------------------------------------------------------------

class TestConversationKey:

    def test_sender_id_preferred(self):
        assert conversation_key(_message_update(user_id=42, chat_id=-100)) == 42

    def test_chat_id_when_no_sender(self):
        assert conversation_key(_message_update(user_id=None, chat_id=-100)) == -100

    def test_edited_message_keyed_like_message(self):
        update = Update.model_validate({
            "update_id": 1,
            "edited_message": {"message_id": 1, "chat": {"id": 3}, "from": {"id": 8}},
        })
        assert conversation_key(update) == 8

    def test_inline_query_without_sender_has_no_key(self):
        update = Update.model_validate({"update_id": 1, "inline_query": {"id": "q", "query": "x"}})
        assert conversation_key(update) is None

    def test_unknown_kind_has_no_key(self):
        assert conversation_key(Update(update_id=9)) is None
