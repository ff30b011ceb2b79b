"""Mock resolvers for schemas without (complete) implementations."""

from __future__ import annotations

import logging
import random
import uuid
from typing import Any, Callable, Dict, Mapping, Optional

from graphql import (
    GraphQLEnumType,
    GraphQLList,
    GraphQLNonNull,
    GraphQLObjectType,
    GraphQLScalarType,
    GraphQLSchema,
    default_field_resolver,
    is_abstract_type,
    is_introspection_type,
)

from graphql_component.config import get_settings

logger = logging.getLogger(__name__)

MockMap = Mapping[str, Callable[[], Any]]

DEFAULT_MOCKS: Dict[str, Callable[[], Any]] = {
    "Int": lambda: random.randint(-100, 100),
    "Float": lambda: random.uniform(-100, 100),
    "String": lambda: "Hello World",
    "Boolean": lambda: random.random() > 0.5,
    "ID": lambda: str(uuid.uuid4()),
}


class _MockValues:
    """Produces generated values for output types."""

    def __init__(self, schema: GraphQLSchema, mocks: MockMap, list_length: int):
        self.schema = schema
        self.mocks = {**DEFAULT_MOCKS, **mocks}
        self.list_length = list_length

    def value(self, output_type: Any) -> Any:
        if isinstance(output_type, GraphQLNonNull):
            return self.value(output_type.of_type)
        if isinstance(output_type, GraphQLList):
            return [self.value(output_type.of_type) for _ in range(self.list_length)]

        if is_abstract_type(output_type):
            possible = self.schema.get_possible_types(output_type)
            if not possible:
                return None
            concrete = possible[0]
            return {**self.value(concrete), "__typename": concrete.name}

        mock = self.mocks.get(output_type.name)
        if isinstance(output_type, GraphQLObjectType):
            value = mock() if mock else None
            return dict(value) if isinstance(value, Mapping) else {}
        if mock is not None:
            return mock()
        if isinstance(output_type, GraphQLEnumType):
            first = next(iter(output_type.values.values()), None)
            return first.value if first is not None else None
        if isinstance(output_type, GraphQLScalarType):
            return "Hello World"
        return None


def _mock_resolver(values: _MockValues, output_type: Any) -> Callable[..., Any]:
    def resolve(root: Any, info: Any, **args: Any) -> Any:
        if root is not None:
            existing = default_field_resolver(root, info, **args)
            if existing is not None:
                return existing
        return values.value(output_type)

    return resolve


def add_mocks_to_schema(
    schema: GraphQLSchema,
    mocks: Optional[MockMap] = None,
    preserve_resolvers: bool = True,
) -> GraphQLSchema:
    """Give every unresolved field a mock resolver.

    Args:
        schema: Schema to mock, mutated in place
        mocks: Type name -> zero-argument callable producing a value
        preserve_resolvers: Keep fields that already have a resolver

    Returns:
        The same schema
    """
    values = _MockValues(schema, mocks or {}, get_settings().MOCK_LIST_LENGTH)

    for named_type in schema.type_map.values():
        if is_introspection_type(named_type) or not isinstance(named_type, GraphQLObjectType):
            continue
        for field in named_type.fields.values():
            if preserve_resolvers and field.resolve is not None:
                continue
            field.resolve = _mock_resolver(values, field.type)

    for named_type in schema.type_map.values():
        if is_abstract_type(named_type) and not is_introspection_type(named_type):
            if named_type.resolve_type is None:
                named_type.resolve_type = _typename_resolver

    return schema


def _typename_resolver(value: Any, _info: Any, _abstract_type: Any) -> Optional[str]:
    if isinstance(value, Mapping):
        return value.get("__typename")
    return None


__all__ = ["DEFAULT_MOCKS", "add_mocks_to_schema"]
