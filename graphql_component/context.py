"""Per-request context aggregation.

Every component may contribute one namespaced entry to the request
context. The root component's aggregator runs its middleware over the
incoming request, evaluates every contribution in the tree, and attaches
the data source bindings for the request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from inspect import isawaitable
from typing import Any, Callable, Dict, List, Mapping, Set, Tuple

from graphql_component.config import get_settings
from graphql_component.errors import ContextBuildError

logger = logging.getLogger(__name__)

ContextFactory = Callable[[Any], Any]
Middleware = Callable[[Any], Any]


@dataclass(frozen=True)
class ContextContribution:
    """A component's namespaced context entry."""

    namespace: str
    factory: ContextFactory


class ComponentContext(dict):
    """The context object handed to every resolver of one request."""

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        # Memoized root resolver results for this request
        self.resolver_cache: Dict[Any, Dict[str, Any]] = {}


def collect_contributions(component: Any) -> List[Tuple[str, ContextContribution]]:
    """Context contributions of a tree, descendants before ancestors.

    A component imported from several places contributes once.
    """
    collected: List[Tuple[str, ContextContribution]] = []
    seen: Set[int] = set()

    def visit(node: Any) -> None:
        if id(node) in seen:
            return
        seen.add(id(node))
        for imported in node.imports:
            visit(imported.component)
        if node.context_contribution is not None:
            collected.append((node.name, node.context_contribution))

    visit(component)
    return collected


class ContextAggregator:
    """Builds the request context for a component tree.

    Example:
        context = await component.context({"headers": headers})
        result = await graphql(component.schema, query, context_value=context)
    """

    def __init__(self, component: Any):
        self._component = component
        self._middleware: List[Tuple[str, Middleware]] = []

    @property
    def middleware(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self._middleware)

    def register(self, name: str, transform: Middleware) -> "ContextAggregator":
        """Append a middleware run over the request before contributions.

        Args:
            name: Middleware name, reported when it fails
            transform: Callable taking the request and returning the new request

        Returns:
            The aggregator, for chaining
        """
        if not callable(transform):
            raise TypeError(f"context middleware '{name}' is not callable")
        self._middleware.append((name, transform))
        logger.debug(f"Registered context middleware '{name}' on {self._component.name}")
        return self

    async def __call__(self, request: Any = None) -> ComponentContext:
        request = await self._apply_middleware(request)

        if request is None:
            context = ComponentContext()
        elif isinstance(request, Mapping):
            context = ComponentContext(request)
        else:
            context = ComponentContext(request=request)

        for owner, contribution in collect_contributions(self._component):
            try:
                value = contribution.factory(request)
                if isawaitable(value):
                    value = await value
            except Exception as exc:
                raise ContextBuildError(
                    f"context for namespace '{contribution.namespace}' of {owner} failed: {exc}",
                    namespace=contribution.namespace,
                ) from exc
            context[contribution.namespace] = value

        context[get_settings().DATA_SOURCES_KEY] = self._component.data_source_proxy.bind(context)
        return context

    async def _apply_middleware(self, request: Any) -> Any:
        for name, transform in list(self._middleware):
            try:
                request = transform(request)
                if isawaitable(request):
                    request = await request
            except Exception as exc:
                raise ContextBuildError(
                    f"context middleware '{name}' failed: {exc}",
                    middleware=name,
                ) from exc
            logger.debug(f"Applied context middleware '{name}'")
        return request


__all__ = [
    "ComponentContext",
    "ContextAggregator",
    "ContextContribution",
    "collect_contributions",
]
