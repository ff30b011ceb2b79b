"""Exclusion transforms applied at import boundaries.

Selectors have the form ``Type.field`` or ``Type.*``. The transform
produces a filtered copy of a schema; the schema it is applied to is
never modified, so excluded fields stay reachable through the owning
component's own schema.
"""

from __future__ import annotations

import logging
from copy import copy
from typing import Any, Dict, Iterable, List, Set, Tuple

from graphql import (
    DocumentNode,
    GraphQLObjectType,
    GraphQLSchema,
    InputObjectTypeDefinitionNode,
    InterfaceTypeDefinitionNode,
    ListTypeNode,
    NonNullTypeNode,
    ObjectTypeDefinitionNode,
    SchemaDefinitionNode,
    UnionTypeDefinitionNode,
    build_ast_schema,
)

from graphql_component.errors import ConfigurationError, SchemaBuildError
from graphql_component.merge import (
    ResolverMap,
    attach_resolvers,
    extract_resolvers,
    merge_type_defs,
    schema_to_document,
)

logger = logging.getLogger(__name__)

WILDCARD = "*"

_FIELD_NODES = (ObjectTypeDefinitionNode, InterfaceTypeDefinitionNode, InputObjectTypeDefinitionNode)


def parse_selector(selector: Any) -> Tuple[str, str]:
    """Split ``Type.field`` / ``Type.*`` into its parts."""
    parts = selector.split(".") if isinstance(selector, str) else []
    if len(parts) != 2 or not parts[0] or not parts[1] or parts[0] == WILDCARD:
        raise ConfigurationError(
            f"invalid exclusion selector {selector!r}, expected 'Type.field' or 'Type.*'"
        )
    return parts[0], parts[1]


def _named_type(type_node: Any) -> str:
    while isinstance(type_node, (NonNullTypeNode, ListTypeNode)):
        type_node = type_node.type
    return type_node.name.value


def _references_removed(field: Any, removed: Set[str]) -> bool:
    if _named_type(field.type) in removed:
        return True
    arguments = getattr(field, "arguments", None) or ()
    return any(_named_type(argument.type) in removed for argument in arguments)


class ExclusionTransform:
    """Removes selected fields from a schema view.

    A type left without fields is removed from the view, and everything
    that referenced a removed type (fields, union members, interfaces,
    root operations) is pruned with it.
    """

    def __init__(self, selectors: Iterable[str] = ()):
        self.selectors = tuple(selectors)
        self._removals: Dict[str, Set[str]] = {}
        for selector in self.selectors:
            type_name, field_name = parse_selector(selector)
            self._removals.setdefault(type_name, set()).add(field_name)

    @property
    def is_empty(self) -> bool:
        return not self._removals

    def transform_schema(self, schema: GraphQLSchema) -> GraphQLSchema:
        """Return a filtered view of ``schema``."""
        if self.is_empty:
            return schema

        document = merge_type_defs([schema_to_document(schema)])
        view = build_ast_schema(self._filter_document(document))
        attach_resolvers(view, self._filter_resolvers(extract_resolvers(schema), view))
        logger.debug(f"Applied exclusions {list(self.selectors)}")
        return view

    def _check_targets(self, types: Dict[str, Any]) -> None:
        for type_name, fields in self._removals.items():
            node = types.get(type_name)
            if not isinstance(node, _FIELD_NODES):
                raise SchemaBuildError(
                    f"exclusion target type '{type_name}' not found or has no fields"
                )
            declared = {field.name.value for field in node.fields or ()}
            missing = sorted(fields - declared - {WILDCARD})
            if missing:
                raise SchemaBuildError(
                    f"exclusion target fields not found on '{type_name}': {missing}"
                )

    def _filter_document(self, document: DocumentNode) -> DocumentNode:
        types = {
            definition.name.value: definition
            for definition in document.definitions
            if isinstance(definition, (*_FIELD_NODES, UnionTypeDefinitionNode))
        }
        self._check_targets(types)

        for type_name, fields in self._removals.items():
            node = copy(types[type_name])
            node.fields = tuple(
                field for field in node.fields or ()
                if WILDCARD not in fields and field.name.value not in fields
            )
            types[type_name] = node

        removed: Set[str] = set()
        changed = True
        while changed:
            changed = False
            for type_name, node in list(types.items()):
                if isinstance(node, UnionTypeDefinitionNode):
                    members = tuple(t for t in node.types or () if t.name.value not in removed)
                    attr = "types"
                else:
                    members = tuple(f for f in node.fields or () if not _references_removed(f, removed))
                    attr = "fields"

                if not members:
                    removed.add(type_name)
                    del types[type_name]
                    changed = True
                    continue
                if len(members) != len(getattr(node, attr) or ()):
                    node = copy(node)
                    setattr(node, attr, members)
                    changed = True
                interfaces = getattr(node, "interfaces", None)
                if interfaces and any(i.name.value in removed for i in interfaces):
                    node = copy(node)
                    node.interfaces = tuple(i for i in interfaces if i.name.value not in removed)
                    changed = True
                types[type_name] = node

        definitions: List[Any] = []
        for definition in document.definitions:
            name = getattr(definition, "name", None)
            if isinstance(definition, SchemaDefinitionNode):
                operations = tuple(
                    op for op in definition.operation_types
                    if op.type.name.value not in removed
                )
                if operations:
                    definition = copy(definition)
                    definition.operation_types = operations
                    definitions.append(definition)
            elif name is not None and name.value in removed:
                continue
            elif name is not None and name.value in types:
                definitions.append(types[name.value])
            else:
                definitions.append(definition)
        return DocumentNode(definitions=tuple(definitions))

    def _filter_resolvers(self, resolvers: ResolverMap, view: GraphQLSchema) -> ResolverMap:
        filtered: ResolverMap = {}
        for type_name, entry in resolvers.items():
            named_type = view.get_type(type_name)
            if named_type is None:
                continue
            if isinstance(named_type, GraphQLObjectType):
                entry = {
                    key: value for key, value in entry.items()
                    if key.startswith("__") or key in named_type.fields
                }
            filtered[type_name] = entry
        return filtered


def exclusions(selectors: Iterable[str] = ()) -> ExclusionTransform:
    """Create an exclusion transform for an import."""
    return ExclusionTransform(selectors)


__all__ = ["ExclusionTransform", "exclusions", "parse_selector", "WILDCARD"]
