"""Unit tests for federation subgraph assembly."""

import asyncio

import pytest

ENTITIES_QUERY = """
query ($representations: [_Any!]!) {
  _entities(representations: $representations) {
    ... on Product { id name }
    ... on Review { id body }
  }
}
"""


def _products():
    from graphql_component import GraphQLComponent

    return GraphQLComponent(
        name="Products",
        types=[
            """
            type Product @key(fields: "id") { id: ID! name: String }
            type Query { product(id: ID!): Product }
            """
        ],
        resolvers={
            "Product": {
                "__resolve_reference": lambda reference, _info: {"id": reference["id"], "name": "Widget"},
            },
            "Query": {"product": lambda _root, _info, id: {"id": id, "name": "Widget"}},
        },
    )


def _reviews():
    from graphql_component import GraphQLComponent

    async def resolve_reference(reference, _info):
        await asyncio.sleep(0)
        return {"id": reference["id"], "body": "Great"}

    return GraphQLComponent(
        name="Reviews",
        types=[
            """
            type Review @key(fields: "id") { id: ID! body: String }
            type Query { reviews: [Review] }
            """
        ],
        resolvers={"Review": {"__resolve_reference": resolve_reference}},
    )


class TestSubgraphSchema:
    """Test federated leaf components."""

    def test_federation_fields_added(self):
        """Test _service, _entities and the federation types are present."""
        from graphql_component import GraphQLComponent

        component = GraphQLComponent(types=_products().types, federation=True)
        schema = component.schema

        assert {"product", "_service", "_entities"} <= set(schema.query_type.fields)
        assert [t.name for t in schema.type_map["_Entity"].types] == ["Product"]
        assert schema.get_directive("key") is not None
        assert schema.get_directive("key").is_repeatable

    def test_no_entities_no_entities_field(self):
        """Test _entities is only added when an entity type exists."""
        from graphql_component import GraphQLComponent

        component = GraphQLComponent(types=["type Query { ping: String }"], federation=True)

        assert "_entities" not in component.schema.query_type.fields
        assert "_Entity" not in component.schema.type_map
        assert "_service" in component.schema.query_type.fields

    def test_service_sdl_excludes_additions(self):
        """Test _service returns the local type definitions."""
        from graphql import graphql_sync
        from graphql_component import GraphQLComponent

        component = GraphQLComponent(types=_products().types, federation=True)

        result = graphql_sync(component.schema, "{ _service { sdl } }")
        sdl = result.data["_service"]["sdl"]

        assert "type Product @key(fields: \"id\")" in sdl
        assert "_Entity" not in sdl
        assert "directive @key" not in sdl

    def test_extension_of_foreign_type_becomes_definition(self):
        """Test extending a type owned by another subgraph."""
        from graphql_component import GraphQLComponent

        component = GraphQLComponent(
            types=[
                """
                extend type User @key(fields: "id") { id: ID! @external reviews: [String] }
                type Query { ping: String }
                """
            ],
            federation=True,
        )

        assert "User" in component.schema.type_map
        assert [t.name for t in component.schema.type_map["_Entity"].types] == ["User"]

    def test_entities_resolved_by_reference(self):
        """Test _entities calls the entity's reference resolver."""
        from graphql import graphql_sync
        from graphql_component import GraphQLComponent

        products = _products()
        component = GraphQLComponent(types=products.types, resolvers=products.resolvers, federation=True)

        result = graphql_sync(
            component.schema,
            "query ($r: [_Any!]!) { _entities(representations: $r) { ... on Product { id name } } }",
            variable_values={"r": [{"__typename": "Product", "id": "1"}]},
        )

        assert result.errors is None
        assert result.data == {"_entities": [{"id": "1", "name": "Widget"}]}

    def test_unknown_entity_is_item_error(self):
        """Test a representation of a non-entity type errors only its item."""
        from graphql import graphql_sync
        from graphql_component import GraphQLComponent

        products = _products()
        component = GraphQLComponent(types=products.types, resolvers=products.resolvers, federation=True)

        result = graphql_sync(
            component.schema,
            "query ($r: [_Any!]!) { _entities(representations: $r) { ... on Product { id } } }",
            variable_values={"r": [{"__typename": "Product", "id": "1"}, {"__typename": "Query"}]},
        )

        assert result.data == {"_entities": [{"id": "1"}, None]}
        assert len(result.errors) == 1
        assert "Query" in result.errors[0].message


class TestFederatedAggregate:
    """Test federation across an import tree."""

    @pytest.mark.asyncio
    async def test_entities_cover_every_import(self):
        """Test an aggregate subgraph resolves entities from all its imports."""
        from graphql import graphql
        from graphql_component import GraphQLComponent

        products, reviews = _products(), _reviews()
        root = GraphQLComponent(name="Gateway", imports=[products, reviews], federation=True)

        assert products.federation and reviews.federation
        result = await graphql(
            root.schema,
            ENTITIES_QUERY,
            variable_values={"representations": [
                {"__typename": "Product", "id": "1"},
                {"__typename": "Review", "id": "r1"},
            ]},
        )

        assert result.errors is None
        assert result.data == {"_entities": [
            {"id": "1", "name": "Widget"},
            {"id": "r1", "body": "Great"},
        ]}
        assert sorted(t.name for t in root.schema.type_map["_Entity"].types) == ["Product", "Review"]

    def test_aggregate_service_sdl(self):
        """Test the aggregate _service SDL describes the whole tree once."""
        from graphql import graphql_sync
        from graphql_component import GraphQLComponent

        root = GraphQLComponent(imports=[_products(), _reviews()], federation=True)

        sdl = graphql_sync(root.schema, "{ _service { sdl } }").data["_service"]["sdl"]

        assert "type Product" in sdl
        assert "type Review" in sdl
        assert "_service" not in sdl
        assert "scalar _Any" not in sdl
