"""GraphQL Components.

Provides:
- Components composing GraphQL schemas through an import tree
- Exclusions at import boundaries
- One per-request context shared by the whole tree
- Shared data sources bound to the request context
- Delegation to another component's schema
- Federation subgraph assembly, mocks and schema directives
"""

from graphql_component.component import (
    GraphQLComponent,
    ImportConfig,
    walk_imports,
)
from graphql_component.context import (
    ComponentContext,
    ContextAggregator,
    ContextContribution,
)
from graphql_component.datasource import (
    DataSource,
    DataSourceBindings,
    DataSourceProxy,
)
from graphql_component.delegate import (
    DelegationRequest,
    delegate_to_component,
)
from graphql_component.directives import SchemaDirectiveVisitor
from graphql_component.errors import (
    ConfigurationError,
    ContextBuildError,
    GraphQLComponentError,
    ProxyBindingError,
    SchemaBuildError,
)
from graphql_component.federation import (
    FederationAssembler,
    SubgraphAssembler,
)
from graphql_component.merge import (
    GraphQLCoreMerger,
    SchemaMerger,
)
from graphql_component.transforms import (
    ExclusionTransform,
    exclusions,
)

__all__ = [
    # Components
    "GraphQLComponent",
    "ImportConfig",
    "walk_imports",
    # Context
    "ComponentContext",
    "ContextAggregator",
    "ContextContribution",
    # Data sources
    "DataSource",
    "DataSourceBindings",
    "DataSourceProxy",
    # Delegation
    "DelegationRequest",
    "delegate_to_component",
    # Schema capabilities
    "SchemaDirectiveVisitor",
    "SchemaMerger",
    "GraphQLCoreMerger",
    "FederationAssembler",
    "SubgraphAssembler",
    "ExclusionTransform",
    "exclusions",
    # Errors
    "GraphQLComponentError",
    "ConfigurationError",
    "SchemaBuildError",
    "ContextBuildError",
    "ProxyBindingError",
]
