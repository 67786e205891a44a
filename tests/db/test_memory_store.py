"""
Tests for the in-memory record store.
"""

import pytest

from crudcore.db import InMemoryStore, MemoryRecord
from crudcore.errors import ConflictError
from crudcore.query import FindSpec, SortDirection
from crudcore.query import predicates as p


@pytest.fixture
def store():
    return InMemoryStore(
        name="Post",
        columns=["title", "views", "published"],
        relations=["author", "comments"],
        rows=[
            {
                "id": 1,
                "title": "Hello world",
                "views": 10,
                "published": True,
                "author": {"name": "Ann", "address": {"city": "Oslo"}},
                "comments": [{"body": "nice"}, {"body": "meh"}],
            },
            {"id": 2, "title": "Second post", "views": 5, "published": False,
             "author": {"name": "Bob"}, "comments": []},
            {"id": 3, "title": "hello again", "views": None, "published": True},
        ],
    )


def ids(records):
    return [r.id for r in records]


@pytest.mark.asyncio
class TestFind:
    async def test_coerces_string_operands(self, store):
        records = await store.find(FindSpec(where={"views": p.more_than("6")}))
        assert ids(records) == [1]

    async def test_like_is_case_sensitive_and_ilike_is_not(self, store):
        like = await store.find(FindSpec(where={"title": p.like("Hello%")}))
        ilike = await store.find(FindSpec(where={"title": p.ilike("hello%")}))
        assert ids(like) == [1]
        assert ids(ilike) == [1, 3]

    async def test_null_fails_comparisons_even_negated(self, store):
        records = await store.find(FindSpec(where={"views": p.not_(p.more_than(6))}))
        assert ids(records) == [2]

    async def test_negated_equality_keeps_nulls(self, store):
        records = await store.find(FindSpec(where={"views": p.not_(p.equal("10"))}))
        assert ids(records) == [2, 3]

    async def test_relation_filters(self, store):
        to_one = await store.find(FindSpec(where={"author": {"name": p.equal("Ann")}}))
        to_many = await store.find(FindSpec(where={"comments": {"body": p.equal("meh")}}))
        nested = await store.find(
            FindSpec(where={"author": {"address": {"city": p.equal("Oslo")}}})
        )
        assert ids(to_one) == ids(to_many) == ids(nested) == [1]

    async def test_or_list(self, store):
        records = await store.find(
            FindSpec(where=[{"id": p.equal(1)}, {"id": p.equal(3)}])
        )
        assert ids(records) == [1, 3]

    async def test_sort_skip_take_with_nulls_last(self, store):
        spec = FindSpec(order={"views": SortDirection.DESC}, skip=1, take=2)
        assert ids(await store.find(spec)) == [2, 3]

    async def test_relations_only_attached_when_included(self, store):
        plain = await store.find_one({"id": p.equal(1)})
        loaded = await store.find_one({"id": p.equal(1)}, relations={"author": True})
        assert not hasattr(plain, "author")
        assert loaded.author.name == "Ann"
        assert not hasattr(loaded.author, "address")

    async def test_select_keeps_primary_keys(self, store):
        record = await store.find_one({"id": p.equal(2)}, select=["title"])
        assert store.dump(record) == {"id": 2, "title": "Second post"}

    async def test_count(self, store):
        assert await store.count({"published": p.equal("true")}) == 2

    async def test_full_text(self):
        store = InMemoryStore("Doc", ["body"], supports_full_text=True,
                              rows=[{"body": "The quick brown fox"}, {"body": "lazy dog"}])
        records = await store.find(FindSpec(where={"body": p.full_text("QUICK fox")}))
        assert [r.body for r in records] == ["The quick brown fox"]


@pytest.mark.asyncio
class TestWrites:
    async def test_save_assigns_sequence_ids(self, store):
        record = store.build({"title": "New", "unknown": "dropped"})
        assert not hasattr(record, "unknown")
        await store.save([record])
        assert record.id == 4
        assert record.views is None
        assert (await store.find_one({"id": p.equal(4)})).title == "New"

    async def test_records_are_detached_until_saved(self, store):
        record = await store.find_one({"id": p.equal(1)})
        record.title = "Changed"
        assert (await store.find_one({"id": p.equal(1)})).title == "Hello world"
        await store.save([record])
        assert (await store.find_one({"id": p.equal(1)})).title == "Changed"

    async def test_duplicate_key_conflicts(self, store):
        with pytest.raises(ConflictError):
            await store.save([MemoryRecord(id=1, title="dup")])

    async def test_soft_remove_and_recover(self, store):
        record = await store.find_one({"id": p.equal(2)})
        await store.soft_remove([record])
        assert store.is_deleted(record)
        assert await store.find_one({"id": p.equal(2)}) is None
        assert await store.find_one({"id": p.equal(2)}, with_deleted=True) is not None

        await store.recover([record])
        assert not store.is_deleted(record)
        assert await store.find_one({"id": p.equal(2)}) is not None

    async def test_remove(self, store):
        record = await store.find_one({"id": p.equal(3)})
        await store.remove([record])
        assert await store.find_one({"id": p.equal(3)}, with_deleted=True) is None

    async def test_soft_delete_can_be_disabled(self):
        store = InMemoryStore("Tag", ["label"], soft_delete_column=None)
        assert not store.supports_soft_delete
        assert "deleted_at" not in store.columns
        with pytest.raises(ConflictError):
            await store.soft_remove([MemoryRecord(id=1)])

    async def test_calls_are_recorded(self, store):
        await store.find(FindSpec())
        await store.count({})
        assert store.calls == ["find", "count"]


def test_dump_skips_private_attributes(store):
    record = MemoryRecord(id=1, title="x", author=MemoryRecord(name="Ann"))
    record._persisted_key = (1,)
    assert store.dump(record) == {"id": 1, "title": "x", "author": {"name": "Ann"}}
