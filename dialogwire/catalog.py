"""Registration table for commands and validators.

Everything reflective happens here, once, when a type is registered:
constructor signatures are read into Recipes, every requirement is
checked to be resolvable in principle, and the requirement graph is
topologically sorted with cycle detection. The resolver then works
from this table only.

A constructor parameter can require:
    Update           the raw inbound update (always present)
    ReadOnlyClient   the read-only transport handle (always present)
    a validated type any type with a registered Validator
    a constructible  a concrete Command or Validator subclass

Continuation-only commands may additionally have parameters that are
not injectable at all ("slots"); those must be supplied through
Continuation(..., **bound).

Key classes:
    NodeKind: How a required type is obtained.
    Param / Recipe: Construction table entries.
    Catalog: The registry itself.
"""

import importlib
import inspect
from dataclasses import dataclass
from enum import Enum
from types import ModuleType
from typing import (
    Collection,
    Dict,
    Iterable,
    List,
    Optional,
    Sequence,
    Tuple,
    get_type_hints,
)

import structlog

from .commands.base import Command, CommandKind, StaticCommand, command_kind
from .exceptions import ConfigurationError, CyclicDependencyError, RegistrationError
from .transport import ReadOnlyClient
from .updates import Update
from .validators import BUILTIN_VALIDATORS, Validator

logger = structlog.get_logger("dialogwire.resolver")


class NodeKind(str, Enum):
    UPDATE = "update"
    CLIENT = "client"
    VALIDATED = "validated"
    CONSTRUCTED = "constructed"


@dataclass(frozen=True)
class Param:
    """One constructor parameter.

    ``requires`` is None for slots: parameters that are left to their
    default or must be bound by a Continuation.
    """
    name: str
    requires: Optional[type]
    has_default: bool = False


@dataclass(frozen=True)
class Recipe:
    """How to construct one type."""
    factory: type
    params: Tuple[Param, ...]

    @property
    def slots(self) -> Tuple[Param, ...]:
        """Parameters that can only come from bound arguments."""
        return tuple(p for p in self.params if p.requires is None and not p.has_default)


_ACTIVE = 1
_DONE = 2


def _qualname(t) -> str:
    return getattr(t, "__qualname__", repr(t))


def _module_types(module: ModuleType) -> List[type]:
    """Concrete commands and validators defined (not imported) in ``module``."""
    return [
        attr for attr in vars(module).values()
        if isinstance(attr, type)
        and attr.__module__ == module.__name__
        and issubclass(attr, (Command, Validator))
        and not inspect.isabstract(attr)
    ]


class Catalog:
    """Known command and validator types, in registration order.

    Args:
        include_builtins: Register the builtin validators (Message,
            CallbackQuery, TextMessage from the raw update).
    """

    def __init__(self, include_builtins: bool = True):
        self._validators: Dict[type, type] = {}
        self._recipes: Dict[type, Recipe] = {}
        self._commands: Dict[type, CommandKind] = {}
        self._generation = 0
        if include_builtins:
            for validator_type in BUILTIN_VALIDATORS:
                self.register_validator(validator_type)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_validator(self, validator_type: type) -> None:
        """Register the single validator for its produced type.

        Raises:
            RegistrationError: Not a concrete Validator, produced type
                unknown, a validator already exists for that type, or
                the validator's own requirements cannot be resolved.
            CyclicDependencyError: The validator (indirectly) requires
                its own output.
        """
        name = _qualname(validator_type)
        if not (isinstance(validator_type, type) and issubclass(validator_type, Validator)):
            raise RegistrationError(f"{name} is not a Validator", type_name=name)
        if inspect.isabstract(validator_type):
            raise RegistrationError(f"{name} is abstract", type_name=name)
        produced = validator_type.produces
        if produced is None:
            raise RegistrationError(
                f"{name} does not declare the type it produces", type_name=name
            )
        existing = self._validators.get(produced)
        if existing is not None:
            raise RegistrationError(
                f"{_qualname(produced)} already validated by {_qualname(existing)}",
                type_name=name,
            )

        self._validators[produced] = validator_type
        self._invalidate()
        try:
            self.dependency_order(produced)
        except RegistrationError:
            del self._validators[produced]
            self._invalidate()
            raise
        logger.debug("validator_registered", validator=name, produces=_qualname(produced))

    def register(self, command_type: type, kind: Optional[CommandKind] = None) -> CommandKind:
        """Register a command type.

        Args:
            command_type: Concrete Command subclass.
            kind: Explicit variant tag. Defaults to the one implied by
                the class hierarchy. A static command may be registered
                as CONTINUATION to keep it out of global matching.

        Returns:
            The variant the type was registered with.

        Raises:
            RegistrationError: Structural defect in the type or its
                requirement graph.
        """
        name = _qualname(command_type)
        if not (isinstance(command_type, type) and issubclass(command_type, Command)):
            raise RegistrationError(f"{name} is not a Command", type_name=name)
        if inspect.isabstract(command_type):
            raise RegistrationError(f"{name} is abstract", type_name=name)
        kind = kind or command_kind(command_type)
        if kind is not CommandKind.CONTINUATION and not issubclass(command_type, StaticCommand):
            raise RegistrationError(
                f"{name} has no suitable() and cannot be {kind.value}", type_name=name
            )

        self.dependency_order(command_type)
        slots = self.recipe(command_type).slots
        if kind is not CommandKind.CONTINUATION and slots:
            raise RegistrationError(
                f"{name} is {kind.value} but parameters "
                f"{[p.name for p in slots]} can never be resolved",
                type_name=name,
            )

        if command_type in self._commands:
            logger.warning("command_registered_twice", command=name)
        self._commands[command_type] = kind
        logger.debug("command_registered", command=name, kind=kind.value)
        return kind

    def register_all(self, types: Iterable[type]) -> List[type]:
        """Register many types, validators first.

        A structurally broken type is logged and skipped; the rest are
        still registered.

        Returns:
            The types that were registered successfully.
        """
        types = list(types)
        validators = [t for t in types if isinstance(t, type) and issubclass(t, Validator)]
        commands = [t for t in types if t not in validators]

        registered: List[type] = []
        for t in validators + commands:
            try:
                if t in validators:
                    self.register_validator(t)
                else:
                    self.register(t)
            except RegistrationError as e:
                logger.error(
                    "type_registration_failed",
                    type=_qualname(t),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue
            registered.append(t)
        return registered

    def register_module(self, module: ModuleType) -> List[type]:
        """Register every concrete command/validator defined in ``module``.

        Imported names are ignored so a module can import another
        module's commands without registering them twice.
        """
        return self._register_modules([module])

    def import_modules(self, names: Sequence[str]) -> List[type]:
        """Import modules by dotted name and register their types.

        All modules are imported before anything is registered, so a
        command may live in a module listed before its validator's.

        Raises:
            ConfigurationError: A module cannot be imported.
        """
        modules: List[ModuleType] = []
        for module_name in names:
            try:
                modules.append(importlib.import_module(module_name))
            except ImportError as e:
                raise ConfigurationError(
                    f"Cannot import command module {module_name}: {e}",
                    setting_name="command_modules",
                ) from e
        return self._register_modules(modules)

    def _register_modules(self, modules: Sequence[ModuleType]) -> List[type]:
        found = {module.__name__: _module_types(module) for module in modules}
        registered = self.register_all(t for types in found.values() for t in types)
        for module_name, types in found.items():
            logger.info(
                "command_module_registered",
                module=module_name,
                found=len(types),
                registered=sum(1 for t in types if t in registered),
            )
        return registered

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def commands(self, kinds: Optional[Collection[CommandKind]] = None) -> List[type]:
        """Registered command types in registration order."""
        return [t for t, k in self._commands.items() if kinds is None or k in kinds]

    def kind_of(self, command_type: type) -> Optional[CommandKind]:
        return self._commands.get(command_type)

    def validator_for(self, produced: type) -> Optional[type]:
        return self._validators.get(produced)

    @property
    def generation(self) -> int:
        """Bumped whenever the validator table changes.

        Recipes and compiled builders made under an older generation may
        classify a parameter differently and must be rebuilt.
        """
        return self._generation

    def _invalidate(self) -> None:
        self._recipes.clear()
        self._generation += 1

    def node_kind(self, required: type) -> Optional[NodeKind]:
        """Classify how a required type is obtained, or None if it cannot be."""
        if required is Update:
            return NodeKind.UPDATE
        if required is ReadOnlyClient:
            return NodeKind.CLIENT
        if required in self._validators:
            return NodeKind.VALIDATED
        if (
            isinstance(required, type)
            and issubclass(required, (Command, Validator))
            and not inspect.isabstract(required)
        ):
            return NodeKind.CONSTRUCTED
        return None

    def recipe(self, cls: type) -> Recipe:
        """Return (building on first use) the construction recipe for ``cls``."""
        recipe = self._recipes.get(cls)
        if recipe is None:
            recipe = self._inspect(cls)
            self._recipes[cls] = recipe
        return recipe

    def _inspect(self, cls: type) -> Recipe:
        name = _qualname(cls)
        if cls.__init__ is object.__init__:
            return Recipe(cls, ())
        try:
            signature = inspect.signature(cls.__init__)
            hints = get_type_hints(cls.__init__)
        except (NameError, TypeError, ValueError) as e:
            raise RegistrationError(
                f"Cannot read constructor of {name}: {e}", type_name=name
            ) from e

        params: List[Param] = []
        for param in list(signature.parameters.values())[1:]:
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            has_default = param.default is not param.empty
            requires = hints.get(param.name)
            if requires is not None and self.node_kind(requires) is not None:
                params.append(Param(param.name, requires, has_default))
            elif has_default or issubclass(cls, Command):
                params.append(Param(param.name, None, has_default))
            else:
                raise RegistrationError(
                    f"{name}.__init__ parameter {param.name!r} "
                    f"({_qualname(requires) if requires else 'unannotated'}) "
                    "cannot be resolved",
                    type_name=name,
                )
        return Recipe(cls, tuple(params))

    def _edges(self, t: type, is_root: bool, exclude: Collection[str]) -> List[type]:
        kind = self.node_kind(t)
        if kind in (NodeKind.UPDATE, NodeKind.CLIENT):
            return []
        if kind is NodeKind.VALIDATED:
            return [self._validators[t]]
        if kind is None:
            raise RegistrationError(
                f"{_qualname(t)} cannot be resolved", type_name=_qualname(t)
            )
        recipe = self.recipe(t)
        if not is_root and recipe.slots:
            raise RegistrationError(
                f"{_qualname(t)} is required by another type but has "
                f"unresolvable parameters {[p.name for p in recipe.slots]}",
                type_name=_qualname(t),
            )
        return [
            p.requires for p in recipe.params
            if p.requires is not None and not (is_root and p.name in exclude)
        ]

    def dependency_order(self, root: type, exclude: Collection[str] = ()) -> List[type]:
        """Topologically sort the requirement graph of ``root``.

        Returns every reachable type, dependencies before dependents,
        ``root`` last. Shared dependencies (diamonds) appear once.

        Args:
            root: Command, validator or validated type.
            exclude: Root constructor parameters to leave out (they
                will be bound, so their subgraphs are not needed).

        Raises:
            CyclicDependencyError: The graph contains a cycle.
            RegistrationError: Some node cannot be resolved.
        """
        order: List[type] = []
        state: Dict[type, int] = {}
        path: List[type] = []

        def visit(t: type) -> None:
            mark = state.get(t)
            if mark == _DONE:
                return
            if mark == _ACTIVE:
                cycle = [_qualname(n) for n in path[path.index(t):]] + [_qualname(t)]
                raise CyclicDependencyError(
                    "Cyclic requirement: " + " -> ".join(cycle),
                    cycle=cycle,
                    type_name=_qualname(root),
                )
            state[t] = _ACTIVE
            path.append(t)
            for child in self._edges(t, t is root, exclude):
                visit(child)
            path.pop()
            state[t] = _DONE
            order.append(t)

        visit(root)
        return order

    def __contains__(self, command_type: object) -> bool:
        return command_type in self._commands

    def __len__(self) -> int:
        return len(self._commands)
