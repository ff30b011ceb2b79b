"""Component composition errors.

Construction-time errors surface to the caller that built the tree;
per-request errors surface to the caller of that request's context build.
"""

from __future__ import annotations

from typing import Optional


class GraphQLComponentError(Exception):
    """Base exception for component composition errors."""
    pass


class ConfigurationError(GraphQLComponentError):
    """Malformed component configuration (imports, context, data sources)."""

    def __init__(self, message: str, component: Optional[str] = None):
        super().__init__(message)
        self.component = component


class SchemaBuildError(GraphQLComponentError):
    """Schema assembly failed. No partial schema is cached."""

    def __init__(self, message: str, component: Optional[str] = None):
        if component:
            message = f"{component}: {message}"
        super().__init__(message)
        self.component = component


class ContextBuildError(GraphQLComponentError):
    """A context middleware or namespace factory failed for one request."""

    def __init__(
        self,
        message: str,
        namespace: Optional[str] = None,
        middleware: Optional[str] = None,
    ):
        super().__init__(message)
        self.namespace = namespace
        self.middleware = middleware


class ProxyBindingError(GraphQLComponentError):
    """A data source method was invoked without a request context."""

    def __init__(
        self,
        message: str,
        data_source: Optional[str] = None,
        method: Optional[str] = None,
    ):
        super().__init__(message)
        self.data_source = data_source
        self.method = method


__all__ = [
    "GraphQLComponentError",
    "ConfigurationError",
    "SchemaBuildError",
    "ContextBuildError",
    "ProxyBindingError",
]
