"""Unit tests for schema directive implementations."""

from graphql import default_field_resolver

from graphql_component import SchemaDirectiveVisitor


class Upper(SchemaDirectiveVisitor):
    def visit_field_definition(self, field, object_type):
        resolve = field.resolve or default_field_resolver

        def upper(root, info, **args):
            return resolve(root, info, **args).upper()

        field.resolve = upper


class Prefix(SchemaDirectiveVisitor):
    def visit_field_definition(self, field, object_type):
        resolve = field.resolve or default_field_resolver
        prefix = self.args["value"]

        def prefixed(root, info, **args):
            return f"{prefix}{resolve(root, info, **args)}"

        field.resolve = prefixed


class Tag(SchemaDirectiveVisitor):
    visited = []

    def visit_object(self, object_type):
        Tag.visited.append(("object", object_type.name))

    def visit_enum_value(self, value, enum_type):
        Tag.visited.append(("enum_value", enum_type.name))

    def visit_argument_definition(self, argument, field, object_type):
        Tag.visited.append(("argument", object_type.name))


class TestSchemaDirectives:
    """Test directive visitors applied during schema assembly."""

    def test_field_directive_wraps_resolver(self):
        """Test a field-definition visitor wraps the field's resolver."""
        from graphql import graphql_sync
        from graphql_component import GraphQLComponent

        component = GraphQLComponent(
            types=["directive @upper on FIELD_DEFINITION type Query { hello: String @upper }"],
            resolvers={"Query": {"hello": lambda _root, _info: "hello"}},
            directives={"upper": Upper},
        )

        assert graphql_sync(component.schema, "{ hello }").data == {"hello": "HELLO"}

    def test_directive_arguments(self):
        """Test visitors receive the directive's coerced arguments."""
        from graphql import graphql_sync
        from graphql_component import GraphQLComponent

        component = GraphQLComponent(
            types=[
                'directive @prefix(value: String!) on FIELD_DEFINITION '
                'type Book { title: String @prefix(value: "Title: ") } '
                "type Query { book: Book }"
            ],
            resolvers={"Query": {"book": lambda _root, _info: {"title": "Dune"}}},
            directives={"prefix": Prefix},
        )

        result = graphql_sync(component.schema, "{ book { title } }")

        assert result.data == {"book": {"title": "Title: Dune"}}

    def test_visitor_locations(self):
        """Test object, enum value and argument hooks are called."""
        from graphql_component import GraphQLComponent

        Tag.visited.clear()
        component = GraphQLComponent(
            types=[
                """
                directive @tag on OBJECT | ENUM_VALUE | ARGUMENT_DEFINITION
                enum Level { LOW @tag HIGH }
                type Query @tag { items(level: Level @tag): [String] }
                """
            ],
            directives={"tag": Tag},
        )

        component.schema

        assert sorted(Tag.visited) == [
            ("argument", "Query"),
            ("enum_value", "Level"),
            ("object", "Query"),
        ]

    def test_unused_implementation_ignored(self):
        """Test an implementation for a directive nobody uses is harmless."""
        from graphql import graphql_sync
        from graphql_component import GraphQLComponent

        component = GraphQLComponent(
            types=["type Query { hello: String }"],
            resolvers={"Query": {"hello": lambda _root, _info: "hello"}},
            directives={"upper": Upper},
        )

        assert graphql_sync(component.schema, "{ hello }").data == {"hello": "hello"}

    def test_import_directive_applied_once(self):
        """Test a directive applied in an import is not applied again by the parent."""
        from graphql import graphql_sync
        from graphql_component import GraphQLComponent

        child = GraphQLComponent(
            types=['directive @prefix(value: String!) on FIELD_DEFINITION type Query { hi: String @prefix(value: "> ") }'],
            resolvers={"Query": {"hi": lambda _root, _info: "hi"}},
            directives={"prefix": Prefix},
        )
        root = GraphQLComponent(imports=[child])

        assert graphql_sync(root.schema, "{ hi }").data == {"hi": "> hi"}
