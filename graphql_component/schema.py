"""Schema assembly for a component.

Builds the executable schema of one component from its local declarations
and the schemas of its imports:
1. Imported schemas, each viewed through its exclusion transform
2. Merge with local type definitions and resolvers (local wins)
3. Federation assembly for federated components
4. Schema directive implementations
5. Mock resolvers for whatever is still unimplemented
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping

from graphql import GraphQLSchema

from graphql_component.directives import visit_schema_directives
from graphql_component.errors import SchemaBuildError
from graphql_component.federation import strip_federation
from graphql_component.merge import to_documents
from graphql_component.mocks import add_mocks_to_schema

logger = logging.getLogger(__name__)


class SchemaBuilder:
    """Assembles the schema of one component.

    The builder does not cache; ``GraphQLComponent.schema`` stores the
    result only when assembly succeeds.
    """

    def __init__(self, component: Any):
        self.component = component

    def build(self) -> GraphQLSchema:
        name = self.component.name
        try:
            schema = self._assemble()
        except SchemaBuildError as exc:
            if exc.component is not None:
                raise
            raise SchemaBuildError(str(exc), component=name) from exc
        except Exception as exc:
            raise SchemaBuildError(f"schema assembly failed: {exc}", component=name) from exc

        logger.info(f"Built schema for {name} ({len(schema.type_map)} types)")
        return schema

    def _assemble(self) -> GraphQLSchema:
        component = self.component
        type_defs = to_documents(component.types)

        if component.imports:
            schema = self._merge_imports(type_defs)
        elif component.federation:
            schema = component.federation_assembler.build_federated_schema(type_defs, component.resolvers)
        else:
            schema = component.merger.make_executable_schema(type_defs, component.resolvers)

        visit_schema_directives(schema, component.directives)
        return self._apply_mocks(schema)

    def _merge_imports(self, type_defs: List[Any]) -> GraphQLSchema:
        component = self.component
        subschemas = []
        for imported in component.imports:
            subschema = imported.component.schema
            if not imported.transform.is_empty:
                logger.debug(f"{component.name} excludes {list(imported.exclude)} from {imported.component.name}")
            subschemas.append(imported.transform.transform_schema(subschema))

        schema = component.merger.merge_schemas(subschemas, type_defs, component.resolvers)
        if not component.federation:
            return schema

        # Re-assemble so _entities and _service cover the whole tree
        document, resolvers = strip_federation(schema)
        return component.federation_assembler.build_federated_schema([document], resolvers)

    def _apply_mocks(self, schema: GraphQLSchema) -> GraphQLSchema:
        mocks = self.component.mocks
        if mocks is True:
            add_mocks_to_schema(schema, preserve_resolvers=True)
        elif isinstance(mocks, Mapping):
            add_mocks_to_schema(schema, mocks=mocks, preserve_resolvers=True)
        return schema


__all__ = ["SchemaBuilder"]
