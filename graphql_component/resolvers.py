"""GraphQL Resolvers.

Normalizes a component's resolver map and memoizes root query resolvers
per request context.
"""

from __future__ import annotations

import asyncio
import json
import logging
from functools import wraps
from inspect import isawaitable
from typing import Any, Callable, Dict, Mapping

from graphql import GraphQLScalarType

from graphql_component.config import get_settings
from graphql_component.errors import ConfigurationError

logger = logging.getLogger(__name__)

Resolver = Callable[..., Any]

MEMOIZED_TYPES = ("Query",)

# Per-request result store expected on the context object
CACHE_ATTRIBUTE = "resolver_cache"


def _cache_key(info: Any, args: Dict[str, Any]) -> str:
    path_key = info.path.key if info is not None and info.path is not None else None
    return f"{path_key}_{json.dumps(args, sort_keys=True, default=str)}"


def memoize_resolver(type_name: str, field_name: str, resolver: Resolver) -> Resolver:
    """Memoize a resolver per request context.

    Results are cached on the request context, one store per wrapped
    resolver, under the response key and arguments, so they live and die
    with the request. Two components resolving the same root field never
    share entries. Contexts without a ``resolver_cache`` are not memoized.
    """

    @wraps(resolver)
    def memoized(root: Any, info: Any, **args: Any) -> Any:
        results = getattr(getattr(info, "context", None), CACHE_ATTRIBUTE, None)
        if results is None:
            return resolver(root, info, **args)

        cache = results.setdefault(memoized, {})
        key = _cache_key(info, args)
        if key in cache:
            logger.debug(f"Memoized result for {type_name}.{field_name} ({key})")
            return cache[key]

        result = resolver(root, info, **args)
        if isawaitable(result):
            # Coroutines can only be awaited once
            result = asyncio.ensure_future(result)
        cache[key] = result
        return result

    return memoized


def prepare_resolvers(resolvers: Mapping[str, Any], component_name: str = "") -> Dict[str, Any]:
    """Copy a resolver map, wrapping root query resolvers for memoization.

    Args:
        resolvers: Type name -> field resolvers, or a scalar implementation
        component_name: Owning component, for error messages

    Returns:
        A new resolver map detached from the caller's mapping
    """
    if not isinstance(resolvers, Mapping):
        raise ConfigurationError(
            f"resolvers in {component_name} must be a mapping of type name to resolvers",
            component=component_name,
        )

    memoize = get_settings().MEMOIZE_ROOT_RESOLVERS
    prepared: Dict[str, Any] = {}
    for type_name, fields in resolvers.items():
        if isinstance(fields, GraphQLScalarType) or not isinstance(fields, Mapping):
            prepared[type_name] = fields
            continue

        prepared[type_name] = {}
        for field_name, resolver in fields.items():
            if memoize and type_name in MEMOIZED_TYPES and callable(resolver) and not field_name.startswith("__"):
                resolver = memoize_resolver(type_name, field_name, resolver)
            prepared[type_name][field_name] = resolver
    return prepared


__all__ = ["CACHE_ATTRIBUTE", "MEMOIZED_TYPES", "Resolver", "memoize_resolver", "prepare_resolvers"]
