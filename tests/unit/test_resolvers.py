"""Unit tests for resolver preparation and root resolver memoization."""

import asyncio
from types import SimpleNamespace

import pytest


def _info(context, key="items"):
    return SimpleNamespace(context=context, path=SimpleNamespace(key=key))


class TestMemoizeResolver:
    """Test per-request memoization."""

    def test_same_request_resolves_once(self):
        """Test repeated calls with one context and arguments hit the cache."""
        from graphql_component import ComponentContext
        from graphql_component.resolvers import memoize_resolver

        calls = []

        def resolve(_root, _info, limit=10):
            calls.append(limit)
            return list(range(limit))

        memoized = memoize_resolver("Query", "items", resolve)
        context = ComponentContext()

        assert memoized(None, _info(context), limit=3) == [0, 1, 2]
        assert memoized(None, _info(context), limit=3) == [0, 1, 2]
        assert calls == [3]

    def test_arguments_and_response_keys_distinguish(self):
        """Test different arguments or aliases are cached separately."""
        from graphql_component import ComponentContext
        from graphql_component.resolvers import memoize_resolver

        calls = []
        memoized = memoize_resolver("Query", "items", lambda _root, _info, limit: calls.append(limit) or limit)
        context = ComponentContext()

        memoized(None, _info(context), limit=1)
        memoized(None, _info(context), limit=2)
        memoized(None, _info(context, key="other"), limit=1)

        assert calls == [1, 2, 1]

    def test_same_field_of_two_resolvers_cached_apart(self):
        """Test two wrapped resolvers for one field name keep separate stores."""
        from graphql_component import ComponentContext
        from graphql_component.resolvers import memoize_resolver

        gateway = memoize_resolver("Query", "user", lambda _root, _info, id: f"gateway-{id}")
        users = memoize_resolver("Query", "user", lambda _root, _info, id: f"users-{id}")
        context = ComponentContext()

        assert gateway(None, _info(context, key="user"), id="1") == "gateway-1"
        assert users(None, _info(context, key="user"), id="1") == "users-1"
        assert len(context.resolver_cache) == 2

    def test_requests_never_share_results(self):
        """Test a new context resolves again."""
        from graphql_component import ComponentContext
        from graphql_component.resolvers import memoize_resolver

        calls = []
        memoized = memoize_resolver("Query", "items", lambda _root, _info: calls.append(1) or len(calls))

        assert memoized(None, _info(ComponentContext())) == 1
        assert memoized(None, _info(ComponentContext())) == 2

    def test_plain_context_not_memoized(self):
        """Test contexts without a result cache call through."""
        from graphql_component.resolvers import memoize_resolver

        calls = []
        memoized = memoize_resolver("Query", "items", lambda _root, _info: calls.append(1))
        context = {}

        memoized(None, _info(context))
        memoized(None, _info(context))

        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_async_result_awaitable_twice(self):
        """Test a memoized coroutine result can be awaited by every caller."""
        from graphql_component import ComponentContext
        from graphql_component.resolvers import memoize_resolver

        calls = []

        async def resolve(_root, _info):
            calls.append(1)
            await asyncio.sleep(0)
            return "value"

        memoized = memoize_resolver("Query", "items", resolve)
        context = ComponentContext()

        first = memoized(None, _info(context))
        second = memoized(None, _info(context))

        assert await first == "value"
        assert await second == "value"
        assert len(calls) == 1

    def test_memoized_in_executed_query(self):
        """Test a root field resolves once per request context across executions."""
        from graphql import graphql_sync
        from graphql_component import GraphQLComponent

        calls = []
        component = GraphQLComponent(
            types=["type Query { counter: Int }"],
            resolvers={"Query": {"counter": lambda _root, _info: calls.append(1) or len(calls)}},
        )
        context = asyncio.run(component.context({}))

        first = graphql_sync(component.schema, "{ counter }", context_value=context)
        second = graphql_sync(component.schema, "{ counter }", context_value=context)
        fresh = graphql_sync(component.schema, "{ counter }", context_value=asyncio.run(component.context({})))

        assert first.data == second.data == {"counter": 1}
        assert fresh.data == {"counter": 2}


class TestPrepareResolvers:
    """Test resolver map preparation."""

    def test_query_resolvers_wrapped(self):
        """Test root query resolvers are memoized and others left alone."""
        from graphql_component.resolvers import prepare_resolvers

        def resolve_items(_root, _info):
            return []

        def resolve_add(_root, _info):
            return None

        prepared = prepare_resolvers({
            "Query": {"items": resolve_items},
            "Mutation": {"add": resolve_add},
        })

        assert prepared["Query"]["items"] is not resolve_items
        assert prepared["Query"]["items"].__wrapped__ is resolve_items
        assert prepared["Mutation"]["add"] is resolve_add

    def test_memoization_disabled(self, monkeypatch):
        """Test the setting turns memoization off."""
        from graphql_component.config import reset_settings
        from graphql_component.resolvers import prepare_resolvers

        monkeypatch.setenv("GRAPHQL_COMPONENT_MEMOIZE_ROOT_RESOLVERS", "false")
        reset_settings()

        def resolve_items(_root, _info):
            return []

        prepared = prepare_resolvers({"Query": {"items": resolve_items}})

        assert prepared["Query"]["items"] is resolve_items

    def test_scalars_passed_through(self):
        """Test scalar implementations are kept as given."""
        from graphql import GraphQLScalarType
        from graphql_component.resolvers import prepare_resolvers

        date = GraphQLScalarType("Date", serialize=str)

        assert prepare_resolvers({"Date": date})["Date"] is date

    def test_non_mapping_rejected(self):
        """Test a resolver map must be a mapping."""
        from graphql_component import ConfigurationError
        from graphql_component.resolvers import prepare_resolvers

        with pytest.raises(ConfigurationError):
            prepare_resolvers([("Query", {})], "Broken")


class TestScalarResolvers:
    """Test custom scalar implementations."""

    def test_scalar_hooks_applied(self):
        """Test serialize and parse hooks from a resolver map entry."""
        from graphql import graphql_sync
        from graphql_component import GraphQLComponent

        component = GraphQLComponent(
            types=["scalar Upper type Query { echo(value: Upper): Upper }"],
            resolvers={
                "Upper": {
                    "serialize": lambda value: value.upper(),
                    "parse_value": lambda value: value.lower(),
                },
                "Query": {"echo": lambda _root, _info, value: value},
            },
        )

        result = graphql_sync(
            component.schema,
            "query ($v: Upper) { echo(value: $v) }",
            variable_values={"v": "MiXeD"},
        )

        assert result.errors is None
        assert result.data == {"echo": "MIXED"}
