"""Schema Merging.

Provides the default schema-merge capability on top of graphql-core:
- Type definition merging (repeated types, extensions, sibling conflicts)
- Resolver extraction from built schemas and attachment to new ones
- Executable schema construction from local declarations
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Tuple, Union

from graphql import (
    DirectiveDefinitionNode,
    DocumentNode,
    EnumTypeDefinitionNode,
    EnumTypeExtensionNode,
    GraphQLEnumType,
    GraphQLInterfaceType,
    GraphQLObjectType,
    GraphQLScalarType,
    GraphQLSchema,
    GraphQLUnionType,
    InputObjectTypeDefinitionNode,
    InputObjectTypeExtensionNode,
    InterfaceTypeDefinitionNode,
    InterfaceTypeExtensionNode,
    NameNode,
    ObjectTypeDefinitionNode,
    ObjectTypeExtensionNode,
    ScalarTypeDefinitionNode,
    ScalarTypeExtensionNode,
    SchemaDefinitionNode,
    SchemaExtensionNode,
    UnionTypeDefinitionNode,
    UnionTypeExtensionNode,
    build_ast_schema,
    is_introspection_type,
    is_specified_directive,
    is_specified_scalar_type,
    parse,
    print_ast,
    print_type,
)
from graphql.utilities.print_schema import print_directive

from graphql_component.config import get_settings
from graphql_component.errors import SchemaBuildError

logger = logging.getLogger(__name__)

TypeDefs = Union[str, DocumentNode]
ResolverMap = Dict[str, Any]

IS_TYPE_OF_KEY = "__is_type_of"
RESOLVE_TYPE_KEY = "__resolve_type"
RESOLVE_REFERENCE_KEY = "__resolve_reference"

# Where entity reference resolvers live on a built GraphQLObjectType
REFERENCE_EXTENSION = "resolve_reference"

CONFLICT_POLICIES = ("last", "first", "error")

_TYPE_KINDS = {
    ObjectTypeDefinitionNode: "object",
    ObjectTypeExtensionNode: "object",
    InterfaceTypeDefinitionNode: "interface",
    InterfaceTypeExtensionNode: "interface",
    InputObjectTypeDefinitionNode: "input",
    InputObjectTypeExtensionNode: "input",
    EnumTypeDefinitionNode: "enum",
    EnumTypeExtensionNode: "enum",
    UnionTypeDefinitionNode: "union",
    UnionTypeExtensionNode: "union",
    ScalarTypeDefinitionNode: "scalar",
    ScalarTypeExtensionNode: "scalar",
}

_DEFINITION_NODES = {
    "object": ObjectTypeDefinitionNode,
    "interface": InterfaceTypeDefinitionNode,
    "input": InputObjectTypeDefinitionNode,
    "enum": EnumTypeDefinitionNode,
    "union": UnionTypeDefinitionNode,
    "scalar": ScalarTypeDefinitionNode,
}


def to_documents(type_defs: Sequence[TypeDefs]) -> List[DocumentNode]:
    """Parse SDL strings, passing parsed documents through."""
    documents = []
    for type_def in type_defs:
        if isinstance(type_def, DocumentNode):
            documents.append(type_def)
        elif isinstance(type_def, str):
            documents.append(parse(type_def))
        else:
            raise SchemaBuildError(
                f"unsupported type definition of type {type(type_def).__name__}"
            )
    return documents


def _extend_unique(target: List[Any], directives: Any) -> None:
    seen = {print_ast(directive) for directive in target}
    for directive in directives or ():
        printed = print_ast(directive)
        if printed not in seen:
            target.append(directive)
            seen.add(printed)


def _members(definition: Any) -> Sequence[Any]:
    kind = _TYPE_KINDS[type(definition)]
    if kind in ("object", "interface", "input"):
        return definition.fields or ()
    if kind == "enum":
        return definition.values or ()
    if kind == "union":
        return definition.types or ()
    return ()


class _MergedType:
    """Accumulated definition of one named type."""

    def __init__(self, name: str, kind: str):
        self.name = name
        self.kind = kind
        self.description = None
        self.directives: List[Any] = []
        self.interfaces: Dict[str, Any] = {}
        self.members: Dict[str, Tuple[Any, int]] = {}

    def to_node(self) -> Any:
        kwargs: Dict[str, Any] = {
            "name": NameNode(value=self.name),
            "description": self.description,
            "directives": tuple(self.directives),
        }
        members = tuple(node for node, _ in self.members.values())
        if self.kind in ("object", "interface"):
            kwargs["interfaces"] = tuple(self.interfaces.values())
            kwargs["fields"] = members
        elif self.kind == "input":
            kwargs["fields"] = members
        elif self.kind == "enum":
            kwargs["values"] = members
        elif self.kind == "union":
            kwargs["types"] = members
        return _DEFINITION_NODES[self.kind](**kwargs)


class TypeDefMerger:
    """Merges type definition documents into a single document.

    Each ``add`` call is a layer. Repeated definitions inside one layer
    merge with the later one winning. Across layers the conflict policy
    decides, except that authoritative layers (local declarations) always
    win. Type extensions are folded into their definition, and extensions
    of types never defined become definitions.
    """

    def __init__(self, policy: str = "last"):
        if policy not in CONFLICT_POLICIES:
            raise ValueError(f"unknown conflict policy: {policy}")
        self.policy = policy
        self._layer = 0
        self._authoritative: Set[int] = set()
        self._operations: Dict[Any, Tuple[Any, int]] = {}
        self._schema_directives: List[Any] = []
        self._directives: Dict[str, Tuple[Any, int]] = {}
        self._types: Dict[str, _MergedType] = {}
        self._owners: Dict[Tuple[str, str], int] = {}

    def add(self, document: DocumentNode, authoritative: bool = False) -> int:
        """Add a document as a new layer and return the layer id."""
        self._layer += 1
        layer = self._layer
        if authoritative:
            self._authoritative.add(layer)

        for definition in document.definitions:
            if isinstance(definition, (SchemaDefinitionNode, SchemaExtensionNode)):
                for operation in definition.operation_types or ():
                    key = operation.operation
                    if self._wins(self._operations.get(key), operation, layer, f"schema {key.value} root"):
                        self._operations[key] = (operation, layer)
                _extend_unique(self._schema_directives, definition.directives)
            elif isinstance(definition, DirectiveDefinitionNode):
                name = definition.name.value
                if self._wins(self._directives.get(name), definition, layer, f"directive @{name}"):
                    self._directives[name] = (definition, layer)
            elif type(definition) in _TYPE_KINDS:
                self._add_type(definition, layer)
            else:
                raise SchemaBuildError(
                    f"unexpected {definition.kind} in type definitions"
                )
        return layer

    def owner(self, type_name: str, member_name: str) -> Optional[int]:
        """Non-authoritative layer whose definition of a member won."""
        return self._owners.get((type_name, member_name))

    def document(self) -> DocumentNode:
        definitions: List[Any] = []
        if self._operations:
            definitions.append(SchemaDefinitionNode(
                directives=tuple(self._schema_directives),
                operation_types=tuple(node for node, _ in self._operations.values()),
            ))
        definitions.extend(node for node, _ in self._directives.values())
        definitions.extend(merged.to_node() for merged in self._types.values())
        return DocumentNode(definitions=tuple(definitions))

    def _wins(self, existing: Optional[Tuple[Any, int]], incoming: Any, layer: int, label: str) -> bool:
        if existing is None or layer in self._authoritative:
            return True
        node, owner_layer = existing
        if owner_layer == layer:
            return True
        if owner_layer in self._authoritative or self.policy == "first":
            return False
        if self.policy == "error" and print_ast(node) != print_ast(incoming):
            raise SchemaBuildError(f"conflicting definitions for {label} across imports")
        return True

    def _add_type(self, definition: Any, layer: int) -> None:
        kind = _TYPE_KINDS[type(definition)]
        name = definition.name.value
        merged = self._types.get(name)
        if merged is None:
            merged = self._types[name] = _MergedType(name, kind)
        elif merged.kind != kind:
            raise SchemaBuildError(
                f"type '{name}' is declared as both {merged.kind} and {kind}"
            )

        description = getattr(definition, "description", None)
        if description is not None and (merged.description is None or layer in self._authoritative):
            merged.description = description
        _extend_unique(merged.directives, definition.directives)
        for interface in getattr(definition, "interfaces", None) or ():
            merged.interfaces.setdefault(interface.name.value, interface)

        for member in _members(definition):
            member_name = member.name.value
            if self._wins(merged.members.get(member_name), member, layer, f"{name}.{member_name}"):
                merged.members[member_name] = (member, layer)
                if layer not in self._authoritative:
                    self._owners[(name, member_name)] = layer


def merge_type_defs(documents: Sequence[DocumentNode], policy: str = "last") -> DocumentNode:
    """Merge documents that all carry the same authority."""
    merger = TypeDefMerger(policy)
    for document in documents:
        merger.add(document, authoritative=True)
    return merger.document()


def schema_to_document(schema: GraphQLSchema) -> DocumentNode:
    """Recover type definitions from a built schema.

    AST nodes recorded at build time are preferred so that applied
    directives (``@key`` and friends) survive; programmatic types are
    printed and re-parsed.
    """
    definitions: List[Any] = []
    if schema.ast_node is not None:
        definitions.append(schema.ast_node)
    definitions.extend(schema.extension_ast_nodes or ())

    for directive in schema.directives:
        if is_specified_directive(directive):
            continue
        definitions.append(
            directive.ast_node or parse(print_directive(directive)).definitions[0]
        )

    for named_type in schema.type_map.values():
        if is_introspection_type(named_type) or is_specified_scalar_type(named_type):
            continue
        definitions.append(
            named_type.ast_node or parse(print_type(named_type)).definitions[0]
        )
        definitions.extend(named_type.extension_ast_nodes or ())

    return DocumentNode(definitions=tuple(definitions))


def extract_resolvers(schema: GraphQLSchema) -> ResolverMap:
    """Collect the resolver map that reproduces a built schema's behavior."""
    resolvers: ResolverMap = {}
    for name, named_type in schema.type_map.items():
        if is_introspection_type(named_type) or is_specified_scalar_type(named_type):
            continue

        if isinstance(named_type, GraphQLObjectType):
            entry: Dict[str, Any] = {}
            for field_name, field in named_type.fields.items():
                if field.subscribe is not None:
                    entry[field_name] = {"resolve": field.resolve, "subscribe": field.subscribe}
                elif field.resolve is not None:
                    entry[field_name] = field.resolve
            if named_type.is_type_of is not None:
                entry[IS_TYPE_OF_KEY] = named_type.is_type_of
            reference = (named_type.extensions or {}).get(REFERENCE_EXTENSION)
            if reference is not None:
                entry[RESOLVE_REFERENCE_KEY] = reference
        elif isinstance(named_type, (GraphQLInterfaceType, GraphQLUnionType)):
            entry = {}
            if named_type.resolve_type is not None:
                entry[RESOLVE_TYPE_KEY] = named_type.resolve_type
        elif isinstance(named_type, GraphQLEnumType):
            entry = {
                value_name: value.value
                for value_name, value in named_type.values.items()
                if value.value is not None and value.value != value_name
            }
        elif isinstance(named_type, GraphQLScalarType):
            resolvers[name] = named_type
            continue
        else:
            continue

        if entry:
            resolvers[name] = entry
    return resolvers


def _attach_scalar(scalar: GraphQLScalarType, entry: Any) -> None:
    if isinstance(entry, GraphQLScalarType):
        overrides = {
            attr: vars(entry)[attr]
            for attr in ("serialize", "parse_value", "parse_literal")
            if attr in vars(entry)
        }
    elif isinstance(entry, Mapping):
        overrides = dict(entry)
    else:
        raise SchemaBuildError(f"invalid scalar implementation for '{scalar.name}'")
    for attr, func in overrides.items():
        if attr not in ("serialize", "parse_value", "parse_literal"):
            raise SchemaBuildError(f"unknown scalar hook '{attr}' for '{scalar.name}'")
        setattr(scalar, attr, func)


def _attach_enum(enum_type: GraphQLEnumType, entry: Mapping[str, Any]) -> None:
    for value_name, internal in entry.items():
        value = enum_type.values.get(value_name)
        if value is None:
            raise SchemaBuildError(
                f"resolver declared for unknown enum value '{enum_type.name}.{value_name}'"
            )
        value.value = internal


def _attach_fields(named_type: Any, entry: Mapping[str, Any]) -> None:
    for key, value in entry.items():
        if key == IS_TYPE_OF_KEY and isinstance(named_type, GraphQLObjectType):
            named_type.is_type_of = value
            continue
        if key == RESOLVE_REFERENCE_KEY and isinstance(named_type, GraphQLObjectType):
            named_type.extensions = {**(named_type.extensions or {}), REFERENCE_EXTENSION: value}
            continue
        if key == RESOLVE_TYPE_KEY and isinstance(named_type, GraphQLInterfaceType):
            named_type.resolve_type = value
            continue

        field = named_type.fields.get(key)
        if field is None:
            raise SchemaBuildError(
                f"resolver declared for unknown field '{named_type.name}.{key}'"
            )
        if isinstance(value, Mapping):
            field.resolve = value.get("resolve", field.resolve)
            field.subscribe = value.get("subscribe", field.subscribe)
        elif callable(value):
            field.resolve = value
        else:
            raise SchemaBuildError(
                f"resolver for '{named_type.name}.{key}' is not callable"
            )


def attach_resolvers(schema: GraphQLSchema, resolvers: Mapping[str, Any]) -> GraphQLSchema:
    """Attach a resolver map to a built schema in place."""
    for type_name, entry in resolvers.items():
        named_type = schema.get_type(type_name)
        if named_type is None:
            raise SchemaBuildError(f"resolvers declared for unknown type '{type_name}'")

        if isinstance(named_type, GraphQLScalarType):
            _attach_scalar(named_type, entry)
        elif isinstance(named_type, GraphQLEnumType):
            _attach_enum(named_type, entry)
        elif isinstance(named_type, (GraphQLObjectType, GraphQLInterfaceType)):
            _attach_fields(named_type, entry)
        elif isinstance(named_type, GraphQLUnionType):
            unknown = set(entry) - {RESOLVE_TYPE_KEY}
            if unknown:
                raise SchemaBuildError(
                    f"union '{type_name}' only accepts {RESOLVE_TYPE_KEY}, got {sorted(unknown)}"
                )
            named_type.resolve_type = entry.get(RESOLVE_TYPE_KEY)
        else:
            raise SchemaBuildError(f"type '{type_name}' does not accept resolvers")
    return schema


class SchemaMerger(ABC):
    """Schema-merge capability used by the schema builder."""

    @abstractmethod
    def make_executable_schema(
        self,
        type_defs: Sequence[DocumentNode],
        resolvers: ResolverMap,
    ) -> GraphQLSchema:
        """Build a standalone executable schema from local declarations."""
        pass

    @abstractmethod
    def merge_schemas(
        self,
        subschemas: Sequence[GraphQLSchema],
        type_defs: Sequence[DocumentNode],
        resolvers: ResolverMap,
    ) -> GraphQLSchema:
        """Merge subschemas with local declarations, local winning."""
        pass


class GraphQLCoreMerger(SchemaMerger):
    """Merges schemas by rebuilding them from their type definitions.

    Subschema fields keep their own resolvers, so the aggregate executes
    in-process without proxying. Sibling conflicts follow ``conflict_policy``.
    """

    def __init__(self, conflict_policy: Optional[str] = None):
        policy = conflict_policy or get_settings().SIBLING_CONFLICT_POLICY
        if policy not in CONFLICT_POLICIES:
            raise ValueError(f"unknown conflict policy: {policy}")
        self.conflict_policy = policy

    def make_executable_schema(
        self,
        type_defs: Sequence[DocumentNode],
        resolvers: ResolverMap,
    ) -> GraphQLSchema:
        schema = build_ast_schema(merge_type_defs(type_defs, self.conflict_policy))
        return attach_resolvers(schema, resolvers)

    def merge_schemas(
        self,
        subschemas: Sequence[GraphQLSchema],
        type_defs: Sequence[DocumentNode],
        resolvers: ResolverMap,
    ) -> GraphQLSchema:
        merger = TypeDefMerger(self.conflict_policy)
        layers = []
        for subschema in subschemas:
            layer = merger.add(schema_to_document(subschema))
            layers.append((layer, extract_resolvers(subschema)))
        for document in type_defs:
            merger.add(document, authoritative=True)

        schema = build_ast_schema(merger.document())
        attach_resolvers(schema, self._combine(merger, layers))
        attach_resolvers(schema, resolvers)
        logger.debug(f"Merged {len(subschemas)} subschemas with {len(type_defs)} local documents")
        return schema

    def _combine(self, merger: TypeDefMerger, layers: Sequence[Tuple[int, ResolverMap]]) -> ResolverMap:
        """Pick each member's resolver from the layer whose definition won."""
        combined: ResolverMap = {}
        for layer, resolvers in layers:
            for type_name, entry in resolvers.items():
                if not isinstance(entry, Mapping):
                    if type_name not in combined or self.conflict_policy != "first":
                        combined[type_name] = entry
                    continue
                target = combined.setdefault(type_name, {})
                for key, value in entry.items():
                    if key.startswith("__"):
                        if key not in target or self.conflict_policy != "first":
                            target[key] = value
                    elif merger.owner(type_name, key) == layer:
                        target[key] = value
        return combined


__all__ = [
    "TypeDefs",
    "ResolverMap",
    "IS_TYPE_OF_KEY",
    "RESOLVE_TYPE_KEY",
    "RESOLVE_REFERENCE_KEY",
    "REFERENCE_EXTENSION",
    "CONFLICT_POLICIES",
    "TypeDefMerger",
    "merge_type_defs",
    "to_documents",
    "schema_to_document",
    "extract_resolvers",
    "attach_resolvers",
    "SchemaMerger",
    "GraphQLCoreMerger",
]
