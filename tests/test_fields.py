"""Tests for the field registry and property path resolution."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

import pytest

from fastapi_getitems.errors import ConfigurationError
from fastapi_getitems.fields import (
    FieldAccessor,
    PropertyPathResolver,
    default_path,
    describe,
    id_accessor,
    register_fields,
    unregister_fields,
)
from tests.models import Author, Book, BookField, Genre, Priority, Tag, book_mapper, full_name

TRANSFORMS = {"full_name": full_name}


@pytest.fixture
def resolver():
    return PropertyPathResolver(Book, book_mapper, TRANSFORMS)


class TestDescribe:
    def test_columns(self):
        fields = describe(Book)
        assert fields["pages"].python_type is int
        assert fields["pages"].nullable is False
        assert fields["price"].python_type is float
        assert fields["price"].nullable is True
        assert fields["published_at"].python_type is datetime
        assert fields["genre"].python_type is Genre
        assert fields["code"].length == 1

    def test_types_from_annotations(self):
        fields = describe(Book)
        assert fields["title"].python_type is str
        assert fields["code"].python_type is str
        assert fields["ref"].python_type is UUID
        assert fields["priority"].python_type is Priority

    def test_relationships(self):
        fields = describe(Book)
        assert fields["author"].target is Author
        assert fields["author"].is_collection is False
        assert fields["tags"].target is Tag
        assert fields["tags"].is_collection is True

    def test_unmapped_class(self):
        class Plain:
            pass

        with pytest.raises(ConfigurationError, match="Plain"):
            describe(Plain)

    def test_registered_fields(self):
        @dataclass
        class Point:
            x: int
            label: Optional[str] = None

        register_fields(Point, [FieldAccessor("x", int, nullable=False), FieldAccessor("label", str)])
        try:
            assert describe(Point)["x"].python_type is int
        finally:
            unregister_fields(Point)


class TestResolve:
    def test_default_path_uses_key_value(self, resolver):
        path = resolver.resolve(BookField.PAGES)
        assert path.scopes == ()
        assert path.leaf.name == "pages"

    def test_scalar_relationship(self, resolver):
        path = resolver.resolve(BookField.AUTHOR_NAME)
        assert [s.accessor.name for s in path.scopes] == ["author"]
        assert path.collection_scope is None
        assert str(path) == "author.first_name"

    def test_collection_boundary(self, resolver):
        path = resolver.resolve(BookField.TAG)
        assert path.collection_scope.accessor.name == "tags"
        assert path.leaf.python_type is str

    def test_named_transform(self, resolver):
        path = resolver.resolve(BookField.AUTHOR_FULL_NAME)
        assert path.leaf.transform is full_name
        assert path.leaf.nullable is False

    def test_empty_path_resolves_to_none(self, resolver):
        assert resolver.resolve(BookField.IGNORED) is None

    def test_second_collection_rejected(self, resolver):
        with pytest.raises(ConfigurationError, match="more than one collection"):
            resolver.resolve(BookField.TAG_BOOK_TITLE)

    def test_path_ending_on_relationship_rejected(self, resolver):
        with pytest.raises(ConfigurationError, match="ends on a relationship"):
            resolver.resolve(BookField.AUTHOR)

    def test_unknown_property(self, resolver):
        with pytest.raises(ConfigurationError, match="'unknown' not found"):
            resolver.resolve(BookField.UNKNOWN)

    def test_continuing_after_scalar_rejected(self):
        resolver = PropertyPathResolver(Book, lambda key: ["title", "length"], TRANSFORMS)
        with pytest.raises(ConfigurationError, match="not a relationship"):
            resolver.resolve("anything")

    def test_unregistered_transform(self):
        resolver = PropertyPathResolver(Book, book_mapper, {})
        with pytest.raises(ConfigurationError, match="Transform 'full_name'"):
            resolver.resolve(BookField.AUTHOR_FULL_NAME)

    def test_missing_mapper(self):
        resolver = PropertyPathResolver(Book, None, TRANSFORMS)
        with pytest.raises(ConfigurationError, match="field mapper"):
            resolver.resolve(BookField.PAGES)


class TestHelpers:
    def test_default_path_of_int_enum_uses_name(self):
        from tests.models import Priority

        assert default_path(Priority.HIGH) == ["HIGH"]

    def test_default_path_of_plain_key(self):
        assert default_path("title") == ["title"]

    def test_id_accessor_by_name_and_attribute(self):
        assert id_accessor(Book, "id").name == "id"
        assert id_accessor(Book, Book.id).name == "id"
        assert id_accessor(Book, None) is None

    def test_unknown_id_field(self):
        with pytest.raises(ConfigurationError, match="Id field 'isbn'"):
            id_accessor(Book, "isbn")
