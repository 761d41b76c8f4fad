"""Tests for interpreted and compiled command resolution."""

from typing import Optional

import pytest

from dialogwire import Command, Response, StaticCommand, TextMessage, Validator, narrow
from dialogwire.catalog import Catalog
from dialogwire.resolver import Resolver
from dialogwire.transport import MemoryTransport, ReadOnlyClient
from dialogwire.updates import CallbackQuery, Update


def _text_update(text, user_id=1):
    return Update.model_validate({
        "update_id": 10,
        "message": {"message_id": 1, "chat": {"id": user_id}, "from": {"id": user_id}, "text": text},
    })


def _callback_update(data="yes"):
    return Update.model_validate({
        "update_id": 11,
        "callback_query": {"id": "cb", "from": {"id": 1}, "data": data},
    })


class Shout(TextMessage):
    pass


class ShoutValidator(Validator[Shout]):
    def __init__(self, text: TextMessage):
        self.text = text

    def validate(self) -> Optional[Shout]:
        if not self.text.text.isupper():
            return None
        return narrow(self.text, Shout)


class Diamond(Command):
    def __init__(self, text: TextMessage, shout: Shout, update: Update, client: ReadOnlyClient):
        self.text = text
        self.shout = shout
        self.update = update
        self.client = client

    async def execute(self):
        return Response()


class AskAge(Command):
    def __init__(self, name, message: TextMessage, retries=3):
        self.name = name
        self.message = message
        self.retries = retries

    async def execute(self):
        return Response()


class WantsCallback(Command):
    def __init__(self, query: CallbackQuery):
        self.query = query

    async def execute(self):
        return Response()


class Exploding(StaticCommand):
    def __init__(self, update: Update):
        raise ValueError("constructor blew up")

    def suitable(self, update):
        return True

    async def execute(self):
        return Response()


class CycleA(Command):
    def __init__(self, b: "CycleB"):
        self.b = b

    async def execute(self):
        return Response()


class CycleB(Command):
    def __init__(self, a: CycleA):
        self.a = a

    async def execute(self):
        return Response()


def _resolver(compiled=True):
    catalog = Catalog()
    catalog.register_validator(ShoutValidator)
    return Resolver(catalog, compiled=compiled)


def _same(a, b):
    if a is None or b is None:
        return a is b
    return type(a) is type(b) and vars(a) == vars(b)


UPDATES = [
    _text_update("HEY"),
    _text_update("hey"),
    _text_update(""),
    _text_update(None),
    _callback_update(),
    Update(update_id=99),
]


# -------------------------------------------------------------------
# Interpreted path
# -------------------------------------------------------------------

class TestResolve:

    def test_pseudo_leaves(self):
        resolver = _resolver()
        client = MemoryTransport()
        update = _text_update("x")
        assert resolver.resolve(update, client, Update) is update
        assert resolver.resolve(update, client, ReadOnlyClient) is client

    def test_validated_type(self):
        resolver = _resolver()
        shout = resolver.resolve(_text_update("LOUD"), MemoryTransport(), Shout)
        assert isinstance(shout, Shout)
        assert shout.text == "LOUD"
        assert resolver.resolve(_text_update("quiet"), MemoryTransport(), Shout) is None

    def test_unknown_type_is_absent(self):
        assert _resolver().resolve(_text_update("x"), MemoryTransport(), int) is None

    def test_diamond_builds_with_shared_value(self):
        command = _resolver().resolve(_text_update("HEY"), MemoryTransport(), Diamond)
        assert command.text.text == "HEY"
        assert command.shout.text == "HEY"


# -------------------------------------------------------------------
# Compiled path
# -------------------------------------------------------------------

class TestCompile:

    def test_builder_cached_per_bound_names(self):
        resolver = _resolver()
        assert resolver.compile(Diamond) is resolver.compile(Diamond)
        assert resolver.compile(AskAge, ["name"]) is resolver.compile(AskAge, ("name",))
        assert resolver.compile(AskAge) is not resolver.compile(AskAge, ["name"])

    def test_unbound_slot_never_builds(self):
        resolver = _resolver()
        assert resolver.compile(AskAge)(_text_update("x"), MemoryTransport()) is None

    def test_cycle_in_unregistered_type_is_absent(self):
        resolver = _resolver()
        assert resolver.build(_text_update("x"), MemoryTransport(), CycleA, compiled=True) is None

    @pytest.mark.parametrize("compiled", [True, False])
    def test_late_validator_refreshes_builders(self, compiled):
        resolver = Resolver(Catalog(), compiled=compiled)
        update = _text_update("HEY")
        assert resolver.build(update, MemoryTransport(), Diamond) is None

        resolver.catalog.register_validator(ShoutValidator)
        command = resolver.build(update, MemoryTransport(), Diamond)
        assert isinstance(command, Diamond)
        assert command.shout.text == "HEY"


# -------------------------------------------------------------------
# Equivalence of both paths
# -------------------------------------------------------------------

class TestEquivalence:

    @pytest.mark.parametrize("update", UPDATES, ids=lambda u: str(u.update_id))
    @pytest.mark.parametrize("command_type", [Diamond, WantsCallback, AskAge])
    def test_same_result_both_paths(self, update, command_type):
        resolver = _resolver()
        client = MemoryTransport()
        interpreted = resolver.build(update, client, command_type, compiled=False)
        compiled = resolver.build(update, client, command_type, compiled=True)
        assert _same(interpreted, compiled)

    @pytest.mark.parametrize("text", ["HEY", "hey"])
    def test_bound_arguments_both_paths(self, text):
        resolver = _resolver()
        client = MemoryTransport()
        update = _text_update(text)
        interpreted = resolver.build(update, client, AskAge, {"name": "Bob"}, compiled=False)
        compiled = resolver.build(update, client, AskAge, {"name": "Bob"}, compiled=True)
        assert _same(interpreted, compiled)
        assert compiled.name == "Bob"
        assert compiled.message.text == text
        assert compiled.retries == 3

    def test_bound_argument_replaces_injectable_one(self):
        resolver = _resolver()
        client = MemoryTransport()
        update = _callback_update()
        bound = {"name": "Bob", "message": "given"}
        interpreted = resolver.build(update, client, AskAge, bound, compiled=False)
        compiled = resolver.build(update, client, AskAge, bound, compiled=True)
        assert compiled.message == "given"
        assert _same(interpreted, compiled)

    def test_idempotent(self):
        resolver = _resolver()
        client = MemoryTransport()
        update = _text_update("HEY")
        first = resolver.build(update, client, Diamond)
        second = resolver.build(update, client, Diamond)
        assert first is not second
        assert _same(first, second)

    def test_possible_keeps_input_order(self):
        resolver = _resolver()
        client = MemoryTransport()
        update = _text_update("HEY")
        types = [WantsCallback, Diamond, Exploding, AskAge, int]
        interpreted = resolver.possible(update, client, types)
        compiled = resolver.possible_compiled(update, client, types)
        assert [type(c) for c in interpreted] == [Diamond]
        assert [type(c) for c in compiled] == [Diamond]


def test_constructor_failure_is_absent():
    resolver = _resolver()
    assert resolver.build(_text_update("x"), MemoryTransport(), Exploding) is None
    assert resolver.build(_text_update("x"), MemoryTransport(), Exploding, compiled=False) is None
