"""Data Sources.

Data sources are stateful data-access objects declared by components and
shared by the whole component tree. Each request gets fresh bindings that
pass the request context as the first argument of every data source
method, so call sites never thread the context through by hand.
"""

from __future__ import annotations

import inspect
import logging
from collections import deque
from functools import wraps
from types import MappingProxyType
from typing import Any, Callable, ClassVar, Dict, Iterator, Mapping, Optional, Tuple

from graphql_component.errors import ConfigurationError, ProxyBindingError

logger = logging.getLogger(__name__)

# Rank of a declaration at a given depth; lower wins
_OVERRIDE_RANK = 0
_DECLARATION_RANK = 1


class DataSource:
    """Base class for data sources.

    Subclasses declare a ``name`` key and public methods that take the
    request context as their first argument after ``self``.

    Example:
        class Users(DataSource):
            name = "Users"

            async def get(self, context, user_id):
                return await self.client.fetch(user_id, token=context["auth"].token)

        # Inside a resolver
        await info.context["data_sources"].Users.get("user-1")
    """

    name: ClassVar[str] = ""


def data_source_key(instance: Any) -> str:
    """Declared key of a data source instance.

    Keys are reached as attributes of the bindings, so they must not start
    with an underscore.
    """
    key = getattr(instance, "name", None)
    if not isinstance(key, str) or not key:
        raise ConfigurationError(
            f"data source {type(instance).__name__} does not declare a 'name' key"
        )
    if key.startswith("_"):
        raise ConfigurationError(
            f"data source key '{key}' of {type(instance).__name__} must not start with '_'"
        )
    return key


_method_cache: Dict[type, Tuple[str, ...]] = {}


def context_methods(cls: type) -> Tuple[str, ...]:
    """Public instance methods of a data source class that take a context."""
    names = _method_cache.get(cls)
    if names is None:
        found = []
        for klass in cls.__mro__:
            if klass in (DataSource, object):
                continue
            for attr_name, attr in vars(klass).items():
                if attr_name.startswith("_") or attr_name in found:
                    continue
                if inspect.isfunction(attr):
                    found.append(attr_name)
        names = _method_cache[cls] = tuple(found)
    return names


def _bind_method(source_name: str, method_name: str, method: Callable[..., Any], context: Any) -> Callable[..., Any]:
    def require_context() -> None:
        if context is None:
            raise ProxyBindingError(
                f"{source_name}.{method_name} called without a request context",
                data_source=source_name,
                method=method_name,
            )

    if inspect.iscoroutinefunction(method):
        @wraps(method)
        async def bound_async(*args: Any, **kwargs: Any) -> Any:
            require_context()
            return await method(context, *args, **kwargs)

        return bound_async

    @wraps(method)
    def bound(*args: Any, **kwargs: Any) -> Any:
        require_context()
        return method(context, *args, **kwargs)

    return bound


class BoundDataSource:
    """A data source bound to one request context.

    Context-taking methods are exposed with the context pre-applied; any
    other attribute reads through to the shared instance.
    """

    def __init__(self, source: Any, context: Any):
        self._source = source
        self._context = context
        key = data_source_key(source)
        for method_name in context_methods(type(source)):
            setattr(self, method_name, _bind_method(key, method_name, getattr(source, method_name), context))

    @property
    def source(self) -> Any:
        return self._source

    def __getattr__(self, attr: str) -> Any:
        if attr.startswith("__") or attr in ("_source", "_context"):
            raise AttributeError(attr)
        return getattr(self._source, attr)

    def __repr__(self) -> str:
        return f"BoundDataSource({self._source!r})"


class DataSourceBindings(Mapping):
    """Per-request mapping of data source key to bound data source."""

    def __init__(self, bindings: Dict[str, BoundDataSource]):
        self._bindings = bindings

    def __getitem__(self, key: str) -> BoundDataSource:
        return self._bindings[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    def __getattr__(self, name: str) -> BoundDataSource:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._bindings[name]
        except KeyError:
            raise AttributeError(f"no data source named '{name}'") from None


class DataSourceProxy:
    """Resolves one data source per key for a component tree.

    Precedence is ranked by (depth from the root, override before plain
    declaration); the lowest rank wins and equal ranks go to the later
    node in breadth-first import order. Instances are resolved once and
    shared; only the bindings are rebuilt per request.
    """

    def __init__(self, component: Any):
        self._component = component
        self._sources = self._resolve(component)

    @property
    def sources(self) -> Mapping[str, Any]:
        return MappingProxyType(self._sources)

    def bind(self, context: Optional[Any]) -> DataSourceBindings:
        """Bind every resolved data source to a request context."""
        return DataSourceBindings({
            key: BoundDataSource(source, context)
            for key, source in self._sources.items()
        })

    def _resolve(self, root: Any) -> Dict[str, Any]:
        winners: Dict[str, Tuple[Tuple[int, int], Any, str]] = {}
        queue = deque([(root, 0)])
        seen = set()

        while queue:
            node, depth = queue.popleft()
            if id(node) in seen:
                continue
            seen.add(id(node))

            declared = (
                (_DECLARATION_RANK, node.data_sources),
                (_OVERRIDE_RANK, node.data_source_overrides),
            )
            for kind, instances in declared:
                for instance in instances:
                    try:
                        key = data_source_key(instance)
                    except ConfigurationError as exc:
                        raise ConfigurationError(f"{node.name}: {exc}", component=node.name) from exc
                    rank = (depth, kind)
                    current = winners.get(key)
                    if current is not None and rank > current[0]:
                        continue
                    if current is not None and current[1] is not instance:
                        if rank == current[0] and kind == _DECLARATION_RANK:
                            logger.warning(
                                f"Data source '{key}' declared by both {current[2]} and {node.name} "
                                f"at depth {depth}; using {node.name}"
                            )
                        else:
                            logger.debug(f"Data source '{key}' from {node.name} replaces {current[2]}")
                    winners[key] = (rank, instance, node.name)

            for imported in node.imports:
                queue.append((imported.component, depth + 1))

        return {key: instance for key, (_, instance, _) in winners.items()}


__all__ = [
    "DataSource",
    "BoundDataSource",
    "DataSourceBindings",
    "DataSourceProxy",
    "context_methods",
    "data_source_key",
]
