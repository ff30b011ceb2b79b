"""GraphQL Federation Support.

Packages component declarations as an Apollo Federation compatible subgraph.

Supports the Federation directives:
- @key: Defines entity identity
- @external: Field defined in another service
- @requires: Field requires other fields
- @provides: Field provides nested fields
- @shareable: Field can be resolved by multiple services
- @extends: Type extends from another service
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from copy import copy
from inspect import isawaitable
from typing import Any, Callable, FrozenSet, List, Mapping, Optional, Sequence, Tuple

from graphql import (
    DirectiveDefinitionNode,
    DocumentNode,
    GraphQLError,
    GraphQLSchema,
    ObjectTypeDefinitionNode,
    OperationType,
    SchemaDefinitionNode,
    build_ast_schema,
    parse,
    print_ast,
)

from graphql_component.config import get_settings
from graphql_component.merge import (
    REFERENCE_EXTENSION,
    ResolverMap,
    attach_resolvers,
    extract_resolvers,
    merge_type_defs,
    schema_to_document,
)

logger = logging.getLogger(__name__)

FEDERATION_DIRECTIVES = {
    "key": "directive @key(fields: _FieldSet!) repeatable on OBJECT | INTERFACE",
    "external": "directive @external on FIELD_DEFINITION | OBJECT",
    "requires": "directive @requires(fields: _FieldSet!) on FIELD_DEFINITION",
    "provides": "directive @provides(fields: _FieldSet!) on FIELD_DEFINITION",
    "extends": "directive @extends on OBJECT | INTERFACE",
    "shareable": "directive @shareable on OBJECT | FIELD_DEFINITION",
}

FEDERATION_SCALARS = ("_Any", "_FieldSet")

# Definitions added by subgraph assembly
FEDERATION_TYPES = FEDERATION_SCALARS + ("_Service", "_Entity")
FEDERATION_FIELDS = ("_service", "_entities")


class FederationAssembler(ABC):
    """Federation-assembly capability used by the schema builder."""

    @abstractmethod
    def build_federated_schema(
        self,
        type_defs: Sequence[DocumentNode],
        resolvers: ResolverMap,
    ) -> GraphQLSchema:
        """Build a federation-composable schema from local declarations."""
        pass


def entity_type_names(document: DocumentNode) -> List[str]:
    """Names of object types carrying an @key directive."""
    return [
        definition.name.value
        for definition in document.definitions
        if isinstance(definition, ObjectTypeDefinitionNode)
        and any(directive.name.value == "key" for directive in definition.directives or ())
    ]


def _query_type_name(document: DocumentNode) -> str:
    for definition in document.definitions:
        if isinstance(definition, SchemaDefinitionNode):
            for operation in definition.operation_types or ():
                if operation.operation == OperationType.QUERY:
                    return operation.type.name.value
    return "Query"


def strip_federation(schema: GraphQLSchema) -> Tuple[DocumentNode, ResolverMap]:
    """Type definitions and resolvers of a subgraph, minus what assembly added.

    Used to re-assemble an aggregate of federated components as a single
    subgraph covering every entity in the tree.
    """
    document = schema_to_document(schema)
    query_name = _query_type_name(document)

    definitions = []
    for definition in document.definitions:
        if isinstance(definition, DirectiveDefinitionNode):
            if definition.name.value in FEDERATION_DIRECTIVES:
                continue
        elif getattr(definition, "name", None) is not None:
            name = definition.name.value
            if name in FEDERATION_TYPES:
                continue
            if name == query_name and isinstance(definition, ObjectTypeDefinitionNode):
                definition = copy(definition)
                definition.fields = tuple(
                    field for field in definition.fields or ()
                    if field.name.value not in FEDERATION_FIELDS
                )
        definitions.append(definition)

    resolvers = {
        type_name: entry
        for type_name, entry in extract_resolvers(schema).items()
        if type_name not in FEDERATION_TYPES
    }
    if query_name in resolvers:
        resolvers[query_name] = {
            key: value for key, value in resolvers[query_name].items()
            if key not in FEDERATION_FIELDS
        }
    return DocumentNode(definitions=tuple(definitions)), resolvers


def _tag(value: Any, type_name: str) -> Any:
    if isinstance(value, Mapping) and "__typename" not in value:
        return {**value, "__typename": type_name}
    return value


def _resolve_entity_type(value: Any, info: Any, abstract_type: Any) -> Optional[str]:
    if isinstance(value, Mapping) and "__typename" in value:
        return value["__typename"]
    possible_types = info.schema.get_possible_types(abstract_type)
    for possible in possible_types:
        if possible.is_type_of is not None and possible.is_type_of(value, info):
            return possible.name
    class_name = type(value).__name__
    if any(possible.name == class_name for possible in possible_types):
        return class_name
    return None


def _entities_resolver(entity_names: FrozenSet[str]) -> Callable[..., List[Any]]:
    def resolve_reference(representation: Any, info: Any) -> Any:
        type_name = representation.get("__typename") if isinstance(representation, Mapping) else None
        if type_name not in entity_names:
            # Returned, not raised, so only this list item errors
            return GraphQLError(f"'{type_name}' is not an entity type of this subgraph")

        entity_type = info.schema.get_type(type_name)
        resolver = (entity_type.extensions or {}).get(REFERENCE_EXTENSION)
        if resolver is None:
            return dict(representation)

        result = resolver(representation, info)
        if isawaitable(result):
            async def await_reference() -> Any:
                return _tag(await result, type_name)

            return await_reference()
        return _tag(result, type_name)

    def resolve_entities(_root: Any, info: Any, representations: List[Any]) -> List[Any]:
        return [resolve_reference(representation, info) for representation in representations]

    return resolve_entities


class SubgraphAssembler(FederationAssembler):
    """Builds subgraph schemas exposing ``_service`` and ``_entities``."""

    def __init__(self, conflict_policy: Optional[str] = None):
        self.conflict_policy = conflict_policy or get_settings().SIBLING_CONFLICT_POLICY

    def build_federated_schema(
        self,
        type_defs: Sequence[DocumentNode],
        resolvers: ResolverMap,
    ) -> GraphQLSchema:
        document = merge_type_defs(type_defs, self.conflict_policy)
        sdl = print_ast(document)
        entities = entity_type_names(document)
        query_name = _query_type_name(document)

        additions = parse(self._federation_sdl(document, entities, query_name))
        schema = build_ast_schema(merge_type_defs([document, additions], self.conflict_policy))
        attach_resolvers(schema, resolvers)

        query_type = schema.get_type(query_name)
        query_type.fields["_service"].resolve = lambda _root, _info: {"sdl": sdl}
        if entities:
            query_type.fields["_entities"].resolve = _entities_resolver(frozenset(entities))
            schema.get_type("_Entity").resolve_type = _resolve_entity_type

        logger.debug(f"Built subgraph schema with entities: {entities}")
        return schema

    def _federation_sdl(self, document: DocumentNode, entities: List[str], query_name: str) -> str:
        defined_directives = set()
        defined_types = set()
        for definition in document.definitions:
            if isinstance(definition, DirectiveDefinitionNode):
                defined_directives.add(definition.name.value)
            elif getattr(definition, "name", None) is not None:
                defined_types.add(definition.name.value)

        lines = [
            sdl for name, sdl in FEDERATION_DIRECTIVES.items()
            if name not in defined_directives
        ]
        lines.extend(f"scalar {name}" for name in FEDERATION_SCALARS if name not in defined_types)
        lines.append("type _Service {\n  sdl: String\n}")

        query_fields = ["_service: _Service!"]
        if entities:
            lines.append(f"union _Entity = {' | '.join(entities)}")
            query_fields.insert(0, "_entities(representations: [_Any!]!): [_Entity]!")
        lines.append(f"type {query_name} {{\n  " + "\n  ".join(query_fields) + "\n}")
        return "\n\n".join(lines)


__all__ = [
    "FEDERATION_DIRECTIVES",
    "FEDERATION_FIELDS",
    "FEDERATION_TYPES",
    "FederationAssembler",
    "SubgraphAssembler",
    "entity_type_names",
    "strip_federation",
]
