"""GraphQL Components.

A component bundles local type definitions, resolvers, a context
contribution and data sources, and may import other components. The root
of an import tree exposes the aggregate schema, one context builder and
one set of data sources for the whole tree.

Example:
    users = GraphQLComponent(
        types=["type Query { user(id: ID!): User } type User { id: ID! name: String }"],
        resolvers={"Query": {"user": resolve_user}},
        data_sources=[UsersDataSource()],
    )
    api = GraphQLComponent(imports=[{"component": users, "exclude": ["Query.user"]}])
    context = await api.context(request)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Set, Tuple, Union

from graphql import DocumentNode, GraphQLSchema

from graphql_component.context import ContextAggregator, ContextContribution
from graphql_component.datasource import DataSourceProxy
from graphql_component.delegate import delegate_to_component
from graphql_component.directives import SchemaDirectiveVisitor
from graphql_component.errors import ConfigurationError, SchemaBuildError
from graphql_component.federation import FederationAssembler, SubgraphAssembler
from graphql_component.merge import GraphQLCoreMerger, ResolverMap, SchemaMerger, TypeDefs
from graphql_component.resolvers import prepare_resolvers
from graphql_component.schema import SchemaBuilder
from graphql_component.transforms import ExclusionTransform

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportConfig:
    """An imported component and the selectors excluded from its schema."""

    component: "GraphQLComponent"
    exclude: Tuple[str, ...] = ()
    transform: ExclusionTransform = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "transform", ExclusionTransform(self.exclude))


def walk_imports(component: "GraphQLComponent") -> Iterator["GraphQLComponent"]:
    """Yield every component of an import tree once, root first.

    Raises:
        ConfigurationError: If the import graph has a cycle
    """
    visited: Set[int] = set()

    def walk(node: "GraphQLComponent", path: Tuple[int, ...]) -> Iterator["GraphQLComponent"]:
        if id(node) in path:
            raise ConfigurationError(
                f"import cycle detected at {node.name}",
                component=node.name,
            )
        if id(node) in visited:
            return
        visited.add(id(node))
        yield node
        for imported in node.imports:
            yield from walk(imported.component, path + (id(node),))

    yield from walk(component, ())


class GraphQLComponent:
    """A composable unit of GraphQL schema, context and data sources."""

    def __init__(
        self,
        types: Union[TypeDefs, Sequence[TypeDefs], None] = None,
        resolvers: Optional[ResolverMap] = None,
        mocks: Union[bool, Mapping[str, Any], None] = None,
        directives: Optional[Mapping[str, type]] = None,
        federation: bool = False,
        imports: Optional[Sequence[Any]] = None,
        context: Union[ContextContribution, Mapping[str, Any], None] = None,
        data_sources: Optional[Sequence[Any]] = None,
        data_source_overrides: Optional[Sequence[Any]] = None,
        name: Optional[str] = None,
        merger: Optional[SchemaMerger] = None,
        federation_assembler: Optional[FederationAssembler] = None,
    ):
        self._name = name or type(self).__name__
        self._types = self._normalize_types(types)
        self._resolvers = prepare_resolvers(resolvers if resolvers is not None else {}, self._name)
        self._mocks = self._normalize_mocks(mocks)
        self._directives = self._normalize_directives(directives)
        self._imports = [self._normalize_import(candidate) for candidate in imports or ()]
        self._context_contribution = self._normalize_context(context)
        self._data_sources = list(data_sources or ())
        self._data_source_overrides = list(data_source_overrides or ())
        self._federation = bool(federation)
        self._merger = merger or GraphQLCoreMerger()
        self._federation_assembler = federation_assembler or SubgraphAssembler()

        self._schema: Optional[GraphQLSchema] = None
        self._building = False
        self._context: Optional[ContextAggregator] = None

        descendants = list(walk_imports(self))
        if self._federation:
            self._propagate_federation(descendants)
        self._data_source_proxy = DataSourceProxy(self)

        logger.debug(
            f"Created component {self._name} with {len(self._imports)} imports "
            f"and {len(self._data_source_proxy.sources)} data sources"
        )

    # Configuration

    def _normalize_types(self, types: Any) -> List[TypeDefs]:
        if types is None:
            return []
        if isinstance(types, (str, DocumentNode)):
            return [types]
        if isinstance(types, Sequence):
            return list(types)
        raise ConfigurationError(
            f"types in {self._name} must be SDL strings or parsed documents",
            component=self._name,
        )

    def _normalize_mocks(self, mocks: Any) -> Union[bool, Mapping[str, Any], None]:
        if mocks is None or isinstance(mocks, (bool, Mapping)):
            return mocks
        raise ConfigurationError(
            f"mocks in {self._name} must be a boolean or a mapping of type name to mock",
            component=self._name,
        )

    def _normalize_directives(self, directives: Any) -> Dict[str, type]:
        directives = dict(directives or {})
        for directive_name, visitor in directives.items():
            if not (isinstance(visitor, type) and issubclass(visitor, SchemaDirectiveVisitor)):
                raise ConfigurationError(
                    f"directive @{directive_name} in {self._name} is not a SchemaDirectiveVisitor subclass",
                    component=self._name,
                )
        return directives

    def _normalize_import(self, candidate: Any) -> ImportConfig:
        if isinstance(candidate, ImportConfig):
            return candidate
        if isinstance(candidate, GraphQLComponent):
            imported, exclude = candidate, ()
        elif isinstance(candidate, Mapping) and isinstance(candidate.get("component"), GraphQLComponent):
            imported, exclude = candidate["component"], candidate.get("exclude") or ()
        else:
            raise ConfigurationError(
                f"import in {self._name} must be a GraphQLComponent or "
                f"{{'component': GraphQLComponent, 'exclude': [...]}}, got {type(candidate).__name__}",
                component=self._name,
            )

        if isinstance(exclude, str):
            exclude = (exclude,)
        try:
            return ImportConfig(imported, tuple(exclude))
        except ConfigurationError as exc:
            raise ConfigurationError(
                f"import of {imported.name} in {self._name}: {exc}",
                component=self._name,
            ) from exc

    def _normalize_context(self, context: Any) -> Optional[ContextContribution]:
        if context is None or isinstance(context, ContextContribution):
            contribution = context
        elif isinstance(context, Mapping):
            contribution = ContextContribution(context.get("namespace"), context.get("factory"))
        else:
            contribution = ContextContribution(
                getattr(context, "namespace", None),
                getattr(context, "factory", None),
            )

        if contribution is not None:
            if not isinstance(contribution.namespace, str) or not contribution.namespace:
                raise ConfigurationError(
                    f"context namespace in {self._name} must be a non-empty string",
                    component=self._name,
                )
            if not callable(contribution.factory):
                raise ConfigurationError(
                    f"context factory for namespace '{contribution.namespace}' in {self._name} is not callable",
                    component=self._name,
                )
        return contribution

    def _propagate_federation(self, descendants: Sequence["GraphQLComponent"]) -> None:
        pending = [node for node in descendants if not node._federation]
        built = [node.name for node in pending if node._schema is not None]
        if built:
            raise ConfigurationError(
                f"cannot enable federation from {self._name}: schema already built for {built}",
                component=self._name,
            )
        for node in pending:
            node._federation = True
            logger.debug(f"Federation enabled on {node.name} by {self._name}")

    # Properties

    @property
    def name(self) -> str:
        return self._name

    @property
    def types(self) -> List[TypeDefs]:
        return list(self._types)

    @property
    def resolvers(self) -> ResolverMap:
        return self._resolvers

    @property
    def imports(self) -> Tuple[ImportConfig, ...]:
        return tuple(self._imports)

    @property
    def mocks(self) -> Union[bool, Mapping[str, Any], None]:
        return self._mocks

    @property
    def directives(self) -> Dict[str, type]:
        return dict(self._directives)

    @property
    def federation(self) -> bool:
        return self._federation

    @property
    def context_contribution(self) -> Optional[ContextContribution]:
        return self._context_contribution

    @property
    def data_sources(self) -> List[Any]:
        return list(self._data_sources)

    @property
    def data_source_overrides(self) -> List[Any]:
        return list(self._data_source_overrides)

    @property
    def data_source_proxy(self) -> DataSourceProxy:
        return self._data_source_proxy

    @property
    def merger(self) -> SchemaMerger:
        return self._merger

    @property
    def federation_assembler(self) -> FederationAssembler:
        return self._federation_assembler

    @property
    def schema(self) -> GraphQLSchema:
        """The executable schema of this component and its imports.

        Built on first access and cached; a failed build caches nothing.
        """
        if self._schema is not None:
            return self._schema
        if self._building:
            raise SchemaBuildError("import cycle detected while building schema", component=self._name)

        self._building = True
        try:
            schema = SchemaBuilder(self).build()
        finally:
            self._building = False
        self._schema = schema
        return schema

    @property
    def context(self) -> ContextAggregator:
        """Context builder for requests against this component's schema."""
        if self._context is None:
            self._context = ContextAggregator(self)
        return self._context

    delegate_to_component = staticmethod(delegate_to_component)

    def __repr__(self) -> str:
        return f"GraphQLComponent(name={self._name!r}, imports={[i.component.name for i in self._imports]})"


__all__ = ["GraphQLComponent", "ImportConfig", "walk_imports"]
