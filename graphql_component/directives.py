"""Schema directive implementations.

A directive implementation is a ``SchemaDirectiveVisitor`` subclass whose
``visit_*`` hooks receive the live schema element carrying the directive.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Mapping, Type

from graphql import (
    GraphQLEnumType,
    GraphQLInputObjectType,
    GraphQLInterfaceType,
    GraphQLObjectType,
    GraphQLScalarType,
    GraphQLSchema,
    GraphQLUnionType,
    is_introspection_type,
    is_specified_scalar_type,
)
from graphql.execution.values import get_argument_values

from graphql_component.errors import SchemaBuildError

logger = logging.getLogger(__name__)


class SchemaDirectiveVisitor:
    """Base class for directive implementations.

    Example:
        class UpperCase(SchemaDirectiveVisitor):
            def visit_field_definition(self, field, object_type):
                resolve = field.resolve or default_field_resolver

                def upper(root, info, **args):
                    return resolve(root, info, **args).upper()

                field.resolve = upper
    """

    def __init__(self, name: str, args: Dict[str, Any], schema: GraphQLSchema):
        self.name = name
        self.args = args
        self.schema = schema

    def visit_scalar(self, scalar: GraphQLScalarType) -> None:
        pass

    def visit_object(self, object_type: GraphQLObjectType) -> None:
        pass

    def visit_field_definition(self, field: Any, object_type: Any) -> None:
        pass

    def visit_argument_definition(self, argument: Any, field: Any, object_type: Any) -> None:
        pass

    def visit_interface(self, interface: GraphQLInterfaceType) -> None:
        pass

    def visit_union(self, union: GraphQLUnionType) -> None:
        pass

    def visit_enum(self, enum_type: GraphQLEnumType) -> None:
        pass

    def visit_enum_value(self, value: Any, enum_type: GraphQLEnumType) -> None:
        pass

    def visit_input_object(self, input_object: GraphQLInputObjectType) -> None:
        pass

    def visit_input_field_definition(self, field: Any, input_object: GraphQLInputObjectType) -> None:
        pass


def _directive_nodes(element: Any) -> Iterable[Any]:
    nodes = [element.ast_node] if element.ast_node is not None else []
    nodes.extend(getattr(element, "extension_ast_nodes", None) or ())
    for node in nodes:
        yield from node.directives or ()


def _apply(
    schema: GraphQLSchema,
    visitors: Mapping[str, Type[SchemaDirectiveVisitor]],
    element: Any,
    hook: str,
    *hook_args: Any,
) -> None:
    for directive_node in _directive_nodes(element):
        name = directive_node.name.value
        visitor_class = visitors.get(name)
        if visitor_class is None:
            continue
        definition = schema.get_directive(name)
        if definition is None:
            raise SchemaBuildError(f"directive @{name} is implemented but not declared")
        args = get_argument_values(definition, directive_node)
        visitor = visitor_class(name, args, schema)
        getattr(visitor, hook)(element, *hook_args)


def visit_schema_directives(
    schema: GraphQLSchema,
    visitors: Mapping[str, Type[SchemaDirectiveVisitor]],
) -> GraphQLSchema:
    """Run directive implementations over every directive usage in a schema.

    Args:
        schema: Built schema, mutated in place
        visitors: Directive name -> SchemaDirectiveVisitor subclass

    Returns:
        The same schema
    """
    if not visitors:
        return schema

    for named_type in list(schema.type_map.values()):
        if is_introspection_type(named_type) or is_specified_scalar_type(named_type):
            continue

        if isinstance(named_type, GraphQLScalarType):
            _apply(schema, visitors, named_type, "visit_scalar")
        elif isinstance(named_type, GraphQLObjectType):
            _apply(schema, visitors, named_type, "visit_object")
        elif isinstance(named_type, GraphQLInterfaceType):
            _apply(schema, visitors, named_type, "visit_interface")
        elif isinstance(named_type, GraphQLUnionType):
            _apply(schema, visitors, named_type, "visit_union")
        elif isinstance(named_type, GraphQLEnumType):
            _apply(schema, visitors, named_type, "visit_enum")
            for value in named_type.values.values():
                _apply(schema, visitors, value, "visit_enum_value", named_type)
        elif isinstance(named_type, GraphQLInputObjectType):
            _apply(schema, visitors, named_type, "visit_input_object")
            for field in named_type.fields.values():
                _apply(schema, visitors, field, "visit_input_field_definition", named_type)

        if isinstance(named_type, (GraphQLObjectType, GraphQLInterfaceType)):
            for field in named_type.fields.values():
                _apply(schema, visitors, field, "visit_field_definition", named_type)
                for argument in field.args.values():
                    _apply(schema, visitors, argument, "visit_argument_definition", field, named_type)

    logger.debug(f"Applied directive implementations: {sorted(visitors)}")
    return schema


__all__ = ["SchemaDirectiveVisitor", "visit_schema_directives"]
