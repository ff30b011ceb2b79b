import os
import pytest


# Settings read from the environment by graphql_component.config
_ENV_VARS_TO_ISOLATE = [
    "GRAPHQL_COMPONENT_DATA_SOURCES_KEY",
    "GRAPHQL_COMPONENT_MEMOIZE_ROOT_RESOLVERS",
    "GRAPHQL_COMPONENT_SIBLING_CONFLICT_POLICY",
    "GRAPHQL_COMPONENT_MOCK_LIST_LENGTH",
]


@pytest.fixture(autouse=True)
def env_isolation():
    """Isolate environment variables and cached settings between tests."""
    from graphql_component.config import reset_settings

    backup = {k: os.environ.get(k) for k in _ENV_VARS_TO_ISOLATE}
    reset_settings()
    try:
        yield
    finally:
        for k, v in backup.items():
            if v is None:
                os.environ.pop(k, None)
            else:
                os.environ[k] = v
        reset_settings()


@pytest.fixture
def books_component():
    """A leaf component with a query, a mutation and a data source."""
    from graphql_component import DataSource, GraphQLComponent

    class BooksDataSource(DataSource):
        name = "Books"

        def __init__(self):
            self.books = {"1": {"id": "1", "title": "Dune"}}

        def get(self, context, book_id):
            return self.books.get(book_id)

    def resolve_book(_root, info, id):
        return info.context["data_sources"].Books.get(id)

    def resolve_add_book(_root, _info, title):
        return {"id": "2", "title": title}

    return GraphQLComponent(
        name="Books",
        types=[
            """
            type Book { id: ID! title: String }
            type Query { book(id: ID!): Book }
            type Mutation { addBook(title: String!): Book }
            """
        ],
        resolvers={
            "Query": {"book": resolve_book},
            "Mutation": {"addBook": resolve_add_book},
        },
        data_sources=[BooksDataSource()],
    )


@pytest.fixture
def authors_component():
    """A leaf component with a query, a mutation and a context namespace."""
    from graphql_component import GraphQLComponent

    return GraphQLComponent(
        name="Authors",
        types=[
            """
            type Author { id: ID! name: String }
            type Query { author(id: ID!): Author }
            type Mutation { addAuthor(name: String!): Author }
            """
        ],
        resolvers={
            "Query": {"author": lambda _root, _info, id: {"id": id, "name": "Frank Herbert"}},
            "Mutation": {"addAuthor": lambda _root, _info, name: {"id": "9", "name": name}},
        },
        context={"namespace": "authors", "factory": lambda request: {"locale": "en"}},
    )
