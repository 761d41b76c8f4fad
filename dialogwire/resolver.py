"""Dependency resolution for commands and validators.

Two equivalent ways to build a command for an update:

Interpreted (``resolve``/``possible``): walk the requirement graph on
every call. Each required type is produced by, in order:
    1. the Update or ReadOnlyClient pseudo-leaves,
    2. its registered validator (built recursively, then validate()),
    3. constructing it from its recipe (every parameter resolved).
Any missing value makes the whole construction absent.

Compiled (``compile``/``possible_compiled``): sort the graph once, then
produce a single builder that evaluates each node in dependency order,
stopping at the first absent value. Builders are cached per command
type and set of bound parameter names.

Absence is always ``None``. A validator therefore cannot produce None
as a meaningful value.
"""

import inspect
from typing import (
    Any,
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Mapping,
    Optional,
    Tuple,
    Type,
)

import structlog

from .catalog import Catalog, NodeKind, Recipe
from .commands.base import Command
from .exceptions import DialogwireError
from .transport import ReadOnlyClient
from .updates import Update

logger = structlog.get_logger("dialogwire.resolver")

Builder = Callable[[Update, ReadOnlyClient, Optional[Mapping[str, Any]]], Optional[Command]]
_Step = Callable[[Dict[type, Any], Optional[Mapping[str, Any]]], Optional[Any]]


def _absent(update, client, bound=None):
    return None


def _validate_step(validator_type: type) -> _Step:
    def step(values, bound):
        return values[validator_type].validate()
    return step


def _construct_step(recipe: Recipe, bound_names: FrozenSet[str], is_root: bool) -> Optional[_Step]:
    """Build a step for constructing ``recipe.factory``.

    Returns None when the recipe can never be satisfied with the given
    bound names (an unbound slot without default).
    """
    plan: List[Tuple[str, Optional[type]]] = []
    for param in recipe.params:
        if is_root and param.name in bound_names:
            plan.append((param.name, None))
        elif param.requires is not None:
            plan.append((param.name, param.requires))
        elif not param.has_default:
            return None
    factory = recipe.factory
    plan = tuple(plan)

    def step(values, bound):
        kwargs = {}
        for name, requires in plan:
            kwargs[name] = bound[name] if requires is None else values[requires]
        return factory(**kwargs)
    return step


class Resolver:
    """Builds commands for updates from a Catalog.

    Args:
        catalog: Registration table to resolve from.
        compiled: Use compiled builders for build()/candidates().
            The interpreted path stays available either way.
    """

    def __init__(self, catalog: Catalog, compiled: bool = True):
        self.catalog = catalog
        self.compiled = compiled
        self._builders: Dict[Tuple[type, FrozenSet[str]], Builder] = {}
        self._generation = catalog.generation

    # ------------------------------------------------------------------
    # Interpreted path
    # ------------------------------------------------------------------

    def resolve(
        self,
        update: Update,
        client: ReadOnlyClient,
        required: type,
        bound: Optional[Mapping[str, Any]] = None,
    ) -> Optional[Any]:
        """Produce an instance of ``required`` for this update, or None.

        ``bound`` supplies constructor arguments of ``required`` itself
        (not of its dependencies).
        """
        kind = self.catalog.node_kind(required)
        if kind is NodeKind.UPDATE:
            return update
        if kind is NodeKind.CLIENT:
            return client
        if kind is NodeKind.VALIDATED:
            validator = self.resolve(update, client, self.catalog.validator_for(required))
            if validator is None:
                return None
            return validator.validate()
        if kind is NodeKind.CONSTRUCTED:
            return self._construct(update, client, required, bound)
        return None

    def _construct(self, update, client, cls, bound):
        kwargs = {}
        for param in self.catalog.recipe(cls).params:
            if bound and param.name in bound:
                kwargs[param.name] = bound[param.name]
            elif param.requires is not None:
                value = self.resolve(update, client, param.requires)
                if value is None:
                    return None
                kwargs[param.name] = value
            elif not param.has_default:
                return None
        return cls(**kwargs)

    def possible(
        self, update: Update, client: ReadOnlyClient, command_types: Iterable[type]
    ) -> List[Command]:
        """Build every command type that resolves for ``update`` (interpreted)."""
        return self._collect(update, client, command_types, compiled=False)

    # ------------------------------------------------------------------
    # Compiled path
    # ------------------------------------------------------------------

    def compile(self, command_type: Type[Command], bound_names: Iterable[str] = ()) -> Builder:
        """Return the cached builder for ``command_type``, compiling it if needed.

        Compilation is pure and deterministic, so two coroutines racing
        on first use store equivalent builders. The cache is dropped when
        a validator has been registered since the builders were made.
        """
        if self._generation != self.catalog.generation:
            self._builders.clear()
            self._generation = self.catalog.generation
        key = (command_type, frozenset(bound_names))
        builder = self._builders.get(key)
        if builder is None:
            builder = self._compile(command_type, key[1])
            self._builders[key] = builder
            logger.debug(
                "builder_compiled",
                command=command_type.__qualname__,
                bound=sorted(key[1]),
            )
        return builder

    def _compile(self, root: type, bound_names: FrozenSet[str]) -> Builder:
        steps: List[Tuple[type, _Step]] = []
        for t in self.catalog.dependency_order(root, exclude=bound_names):
            kind = self.catalog.node_kind(t)
            if kind in (NodeKind.UPDATE, NodeKind.CLIENT):
                continue
            if kind is NodeKind.VALIDATED:
                steps.append((t, _validate_step(self.catalog.validator_for(t))))
                continue
            step = _construct_step(self.catalog.recipe(t), bound_names, t is root)
            if step is None:
                return _absent
            steps.append((t, step))
        steps = tuple(steps)

        def build(update, client, bound=None):
            values: Dict[type, Any] = {Update: update, ReadOnlyClient: client}
            for target, step in steps:
                value = step(values, bound)
                if value is None:
                    return None
                values[target] = value
            return values[root]
        return build

    def possible_compiled(
        self, update: Update, client: ReadOnlyClient, command_types: Iterable[type]
    ) -> List[Command]:
        """Build every command type that resolves for ``update`` (compiled)."""
        return self._collect(update, client, command_types, compiled=True)

    # ------------------------------------------------------------------
    # Dispatch entry points
    # ------------------------------------------------------------------

    def build(
        self,
        update: Update,
        client: ReadOnlyClient,
        command_type: Type[Command],
        bound: Optional[Mapping[str, Any]] = None,
        *,
        compiled: Optional[bool] = None,
    ) -> Optional[Command]:
        """Build one command, or None if it does not resolve.

        Failures inside constructors or validators, and structural
        defects in types that were never registered, are logged and
        treated as absence so one broken command cannot break dispatch.
        """
        use_compiled = self.compiled if compiled is None else compiled
        try:
            if use_compiled:
                return self.compile(command_type, bound or ())(update, client, bound)
            return self.resolve(update, client, command_type, bound)
        except DialogwireError as e:
            logger.error(
                "command_structure_invalid",
                command=command_type.__qualname__,
                error=str(e),
            )
        except Exception as e:
            logger.warning(
                "command_build_failed",
                command=command_type.__qualname__,
                error=str(e),
                error_type=type(e).__name__,
            )
        return None

    def candidates(
        self, update: Update, client: ReadOnlyClient, command_types: Iterable[type]
    ) -> List[Command]:
        """Build all resolvable commands using the configured path."""
        return self._collect(update, client, command_types, compiled=self.compiled)

    def _collect(self, update, client, command_types, compiled: bool) -> List[Command]:
        built: List[Command] = []
        for command_type in command_types:
            if not (isinstance(command_type, type) and issubclass(command_type, Command)):
                continue
            if inspect.isabstract(command_type):
                continue
            command = self.build(update, client, command_type, compiled=compiled)
            if command is not None:
                built.append(command)
        return built
