"""Delegation of a resolver's field to another component's schema.

The caller's selection set is forwarded, aliases included, to a root field
of the target component with caller arguments inlined as literals. The
result is re-keyed by field name for the caller's resolvers; a field
selected under several aliases resolves by the response key of the field
being resolved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from inspect import isawaitable
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Union

from graphql import (
    ArgumentNode,
    DocumentNode,
    ExecutionResult,
    FieldNode,
    FragmentSpreadNode,
    GraphQLError,
    InlineFragmentNode,
    NameNode,
    OperationDefinitionNode,
    OperationType,
    SelectionSetNode,
    Visitor,
    ast_from_value,
    execute,
    visit,
)
from graphql.execution.values import get_argument_values

logger = logging.getLogger(__name__)


@dataclass
class DelegationRequest:
    """A delegated operation, before it runs against the target schema."""

    document: DocumentNode
    variables: Dict[str, Any]
    operation: OperationType
    field_name: str


class ByResponseKey:
    """Values of one field selected under several aliases.

    The default field resolver calls a callable field value with the
    resolve info, so each alias picks its own value by response key.
    """

    def __init__(self, values: Dict[str, Any]):
        self.values = values

    def __call__(self, info: Any, **_args: Any) -> Any:
        return self.values.get(info.path.key)

    def __repr__(self) -> str:
        return f"ByResponseKey({self.values!r})"


class _VariableCollector(Visitor):
    def __init__(self) -> None:
        super().__init__()
        self.names: Set[str] = set()

    def enter_variable(self, node: Any, *_args: Any) -> None:
        self.names.add(node.name.value)


def _root_type(schema: Any, operation: OperationType) -> Any:
    if operation == OperationType.MUTATION:
        return schema.mutation_type
    if operation == OperationType.SUBSCRIPTION:
        return schema.subscription_type
    return schema.query_type


def _selection_set(info: Any) -> Optional[SelectionSetNode]:
    selections: List[Any] = []
    for field_node in info.field_nodes:
        if field_node.selection_set is not None:
            selections.extend(field_node.selection_set.selections)
    if not selections:
        return None
    return SelectionSetNode(selections=tuple(selections))


def _fields_by_response_key(
    selection_set: SelectionSetNode,
    fragments: Mapping[str, Any],
) -> Dict[str, List[FieldNode]]:
    fields: Dict[str, List[FieldNode]] = {}
    for selection in selection_set.selections:
        if isinstance(selection, FieldNode):
            fields.setdefault((selection.alias or selection.name).value, []).append(selection)
            continue
        if isinstance(selection, InlineFragmentNode):
            nested = selection.selection_set
        elif isinstance(selection, FragmentSpreadNode) and selection.name.value in fragments:
            nested = fragments[selection.name.value].selection_set
        else:
            continue
        for key, nodes in _fields_by_response_key(nested, fragments).items():
            fields.setdefault(key, []).extend(nodes)
    return fields


def _merged_selection(nodes: Sequence[FieldNode]) -> Optional[SelectionSetNode]:
    selections = [
        selection
        for node in nodes if node.selection_set is not None
        for selection in node.selection_set.selections
    ]
    return SelectionSetNode(selections=tuple(selections)) if selections else None


def rekey_by_field_name(
    value: Any,
    selection_set: Optional[SelectionSetNode],
    fragments: Mapping[str, Any],
) -> Any:
    """Re-key delegated data from response keys to field names.

    A field selected under one response key maps to its value; a field
    selected under several maps to a ``ByResponseKey``.
    """
    if value is None or selection_set is None:
        return value
    if isinstance(value, list):
        return [rekey_by_field_name(item, selection_set, fragments) for item in value]
    if not isinstance(value, Mapping):
        return value

    by_name: Dict[str, Dict[str, Any]] = {}
    for response_key, nodes in _fields_by_response_key(selection_set, fragments).items():
        if response_key not in value:
            continue
        by_name.setdefault(nodes[0].name.value, {})[response_key] = rekey_by_field_name(
            value[response_key], _merged_selection(nodes), fragments
        )
    return {
        name: next(iter(values.values())) if len(values) == 1 else ByResponseKey(values)
        for name, values in by_name.items()
    }


def _caller_args(info: Any) -> Dict[str, Any]:
    field = info.parent_type.fields.get(info.field_name)
    if field is None:
        return {}
    return get_argument_values(field, info.field_nodes[0], info.variable_values)


def build_delegation_request(
    schema: Any,
    info: Any,
    operation: OperationType,
    field_name: str,
    args: Mapping[str, Any],
) -> DelegationRequest:
    """Build the operation forwarded to ``schema`` for the resolving field.

    Raises:
        GraphQLError: If the target schema has no such root field
    """
    root_type = _root_type(schema, operation)
    if root_type is None or field_name not in root_type.fields:
        raise GraphQLError(f"target schema has no {operation.value} field '{field_name}'")
    target_field = root_type.fields[field_name]

    arguments = []
    for arg_name, value in {**_caller_args(info), **args}.items():
        target_arg = target_field.args.get(arg_name)
        if target_arg is None:
            continue
        value_node = ast_from_value(value, target_arg.type)
        if value_node is not None:
            arguments.append(ArgumentNode(name=NameNode(value=arg_name), value=value_node))

    selection_set = _selection_set(info)
    fragments = list(info.fragments.values())

    collector = _VariableCollector()
    for node in ([selection_set] if selection_set is not None else []) + fragments:
        visit(node, collector)

    variable_definitions = tuple(
        definition for definition in info.operation.variable_definitions or ()
        if definition.variable.name.value in collector.names
    )
    variables = {
        name: info.variable_values[name]
        for name in collector.names
        if name in info.variable_values
    }

    field = FieldNode(
        name=NameNode(value=field_name),
        arguments=tuple(arguments),
        directives=(),
        selection_set=selection_set,
    )
    operation_node = OperationDefinitionNode(
        operation=operation,
        variable_definitions=variable_definitions,
        directives=(),
        selection_set=SelectionSetNode(selections=(field,)),
    )
    return DelegationRequest(
        document=DocumentNode(definitions=(operation_node, *fragments)),
        variables=variables,
        operation=operation,
        field_name=field_name,
    )


def _unwrap(result: ExecutionResult, info: Any, field_name: str, transforms: Sequence[Any]) -> Any:
    for transform in reversed(transforms):
        hook = getattr(transform, "transform_result", None)
        if hook is not None:
            result = hook(result)

    value = (result.data or {}).get(field_name)
    if result.errors:
        if value is None:
            raise result.errors[0]
        logger.warning(f"Delegated field '{field_name}' returned partial data: {result.errors[0].message}")
    return rekey_by_field_name(value, _selection_set(info), info.fragments)


def delegate_to_component(
    component: Any,
    *,
    context: Any,
    info: Any,
    operation: Union[str, OperationType, None] = None,
    field_name: Optional[str] = None,
    args: Optional[Mapping[str, Any]] = None,
    transforms: Optional[Sequence[Any]] = None,
) -> Any:
    """Resolve the current field by running it against another component.

    Args:
        component: Target component
        context: Request context, forwarded unchanged
        info: Resolve info of the delegating resolver
        operation: Root operation of the target field, defaults to the caller's
        field_name: Target root field, defaults to the caller's field name
        args: Arguments overriding the caller's arguments
        transforms: Objects with optional ``transform_request`` and
            ``transform_result`` hooks

    Returns:
        The target field's value, or an awaitable of it when the target
        resolvers are asynchronous
    """
    if context is None or info is None:
        raise ValueError("delegate_to_component requires both context and info")

    if isinstance(operation, str):
        operation = OperationType(operation)
    operation = operation or info.operation.operation
    field_name = field_name or info.field_name
    transforms = list(transforms or ())

    request = build_delegation_request(component.schema, info, operation, field_name, args or {})
    for transform in transforms:
        hook = getattr(transform, "transform_request", None)
        if hook is not None:
            request = hook(request)

    logger.debug(f"Delegating {operation.value} field '{field_name}' to {component.name}")
    result = execute(
        component.schema,
        request.document,
        root_value=info.root_value,
        context_value=context,
        variable_values=request.variables,
    )
    if isawaitable(result):
        async def await_result() -> Any:
            return _unwrap(await result, info, field_name, transforms)

        return await_result()
    return _unwrap(result, info, field_name, transforms)


__all__ = [
    "ByResponseKey",
    "DelegationRequest",
    "build_delegation_request",
    "delegate_to_component",
    "rekey_by_field_name",
]
