"""
Tests for response serialization: field masks, hidden fields, the
request-scoped cache and envelope metadata.
"""

import pytest

from crudcore.crud import FieldMask, ResponseFactory
from crudcore.db import InMemoryStore, MemoryRecord
from crudcore.schemas import PaginationState


@pytest.fixture
def store():
    return InMemoryStore("User", ["name", "email", "token"], hidden_fields=["token"])


def user(**values):
    values.setdefault("id", 1)
    return MemoryRecord(**values)


class TestFieldMask:
    def test_top_level_and_nested_paths(self):
        mask = FieldMask(["password", "author.email"])
        data = {
            "name": "x",
            "password": "secret",
            "author": {"name": "Ann", "email": "a@x"},
        }
        assert mask.apply(data) == {"name": "x", "author": {"name": "Ann"}}
        # Source is untouched
        assert data["author"]["email"] == "a@x"

    def test_nested_path_applies_to_every_list_item(self):
        mask = FieldMask(["comments.secret"])
        data = {"comments": [{"body": "a", "secret": 1}, {"body": "b", "secret": 2}]}
        assert mask.apply(data) == {"comments": [{"body": "a"}, {"body": "b"}]}

    def test_whole_relation_wins_over_nested_path(self):
        mask = FieldMask(["author", "author.email"])
        assert mask.apply({"author": {"email": "a"}, "id": 1}) == {"id": 1}

    def test_missing_paths_are_ignored(self):
        mask = FieldMask(["nope.deeper"])
        assert mask.apply({"id": 1, "nope": None}) == {"id": 1, "nope": None}

    def test_empty(self):
        assert not FieldMask()
        assert FieldMask(["a", "a"]).fields == ("a",)


class TestResponseFactory:
    def test_hidden_fields_removed_after_mask(self, store):
        factory = ResponseFactory(store)
        data = factory.transform(user(name="A", email="a@x", token="t"), exclude=["email"])
        assert data == {"id": 1, "name": "A"}

    def test_list_and_none(self, store):
        factory = ResponseFactory(store)
        assert factory.transform(None) is None
        assert factory.transform([user(id=1, name="A"), user(id=2, name="B")]) == [
            {"id": 1, "name": "A"},
            {"id": 2, "name": "B"},
        ]

    def test_cache_is_keyed_by_identity_and_mask(self, store):
        factory = ResponseFactory(store)
        first = factory.transform(user(name="A", email="a@x"))
        # Same key in the same request: served from the cache
        second = factory.transform(user(name="changed", email="a@x"))
        masked = factory.transform(user(name="changed", email="a@x"), exclude=["email"])

        assert second is first
        assert masked == {"id": 1, "name": "changed"}

        factory.clear()
        assert factory.transform(user(name="changed", email="a@x"))["name"] == "changed"

    def test_cache_is_keyed_by_loaded_shape(self, store):
        factory = ResponseFactory(store)
        plain = factory.transform(user(name="A"), shape=((), None))
        loaded = factory.transform(
            user(name="A", profile=MemoryRecord(bio="hi")), shape=(("profile",), None)
        )
        assert "profile" not in plain
        assert loaded["profile"] == {"bio": "hi"}
        assert factory.transform(user(name="B"), shape=((), None)) is plain

    def test_hidden_paths_are_not_reported(self, store):
        response = ResponseFactory(store).create_response(
            user(name="A", email="a@x", profile=MemoryRecord(bio="hi")),
            "index",
            exclude=["email"],
            hidden=["profile"],
        )
        assert response.data == {"id": 1, "name": "A"}
        assert response.metadata.excluded_fields == ["email"]

    def test_records_without_key_are_not_cached(self, store):
        factory = ResponseFactory(store)
        record = MemoryRecord(name="draft")
        assert factory.transform([record, MemoryRecord(name="other")]) == [
            {"name": "draft"},
            {"name": "other"},
        ]
        assert factory._cache == {}

    def test_create_response_metadata(self, store):
        factory = ResponseFactory(store)
        pagination = PaginationState(type="cursor", total=2, limit=10, total_pages=1)
        response = factory.create_response(
            [user(id=1, name="A"), user(id=2, name="B")],
            "index",
            exclude=["email"],
            pagination=pagination,
            included_relations=["posts"],
        )
        data = response.to_dict()
        assert data["metadata"]["operation"] == "index"
        assert data["metadata"]["affectedCount"] == 2
        assert data["metadata"]["excludedFields"] == ["email"]
        assert data["metadata"]["includedRelations"] == ["posts"]
        assert data["metadata"]["pagination"] == {
            "type": "cursor",
            "total": 2,
            "limit": 10,
            "totalPages": 1,
        }
        assert "isNew" not in data["metadata"]

    def test_affected_count_for_single_and_empty(self, store):
        factory = ResponseFactory(store)
        assert factory.create_response(user(), "show").metadata.affected_count == 1
        assert factory.create_response(None, "show").metadata.affected_count == 0
        assert factory.create_response([], "index", affected_count=7).metadata.affected_count == 7
