"""
Tests for the pagination engine.
"""

from types import SimpleNamespace

import pytest

from crudcore.pagination import (
    Cursor,
    PaginationEngine,
    PaginationRequest,
    PaginationType,
    continuation_where,
    decode_cursor,
    encode_cursor,
    order_keys,
    resolve_take,
)
from crudcore.query import PageOperation, PageType, SortDirection
from crudcore.query import predicates as p


@pytest.fixture
def engine():
    return PaginationEngine()


def rows(*ids):
    return [SimpleNamespace(id=i, name=f"n{i}") for i in ids]


class TestResolveTake:
    @pytest.mark.parametrize(
        "args,expected",
        [
            ((5, 10, 20, 100), 5),
            ((None, 10, 20, 100), 10),
            ((None, None, 20, 100), 20),
            ((None, None, None, 100), 100),
            ((0, -1, None, 100), 100),
        ],
    )
    def test_precedence(self, args, expected):
        assert resolve_take(*args) == expected


class TestContinuationWhere:
    def test_directions(self):
        cursor = Cursor([("age", 30), ("id", 4)])
        where = continuation_where(
            cursor, {"age": SortDirection.ASC, "id": SortDirection.DESC}
        )
        assert where == {"age": p.more_than(30), "id": p.less_than(4)}

    def test_missing_field_uses_default_direction(self):
        cursor = Cursor([("id", 4)])
        assert continuation_where(cursor, {}) == {"id": p.less_than(4)}
        assert continuation_where(cursor, {}, SortDirection.ASC) == {"id": p.more_than(4)}

    def test_string_directions(self):
        cursor = Cursor([("id", 4)])
        assert continuation_where(cursor, {"id": "asc"}) == {"id": p.more_than(4)}

    def test_order_keys_include_relation_paths(self):
        order = {"age": SortDirection.ASC, "author": {"name": SortDirection.ASC}, "id": "desc"}
        assert order_keys(order) == ["age", "author.name", "id"]

    def test_relation_fields_use_their_nested_direction(self):
        cursor = Cursor([("author.name", "Ann"), ("id", 4)])
        order = {"author": {"name": SortDirection.DESC}, "id": SortDirection.ASC}
        assert continuation_where(cursor, order) == {
            "author.name": p.less_than("Ann"),
            "id": p.more_than(4),
        }


class TestResolve:
    def test_without_page_uses_default_type(self, engine):
        request = engine.resolve(None, PaginationType.CURSOR, 25)
        assert request.type == PaginationType.CURSOR
        assert request.take == 25
        assert request.cursor is None
        assert not request.is_next

    def test_number_page_becomes_offset(self, engine):
        page = PageOperation(PageType.NUMBER, number=3, size=10)
        request = engine.resolve(page, PaginationType.CURSOR, 10)
        assert request.type == PaginationType.OFFSET
        assert request.offset == 20

    def test_offset_page(self, engine):
        page = PageOperation(PageType.OFFSET, offset=7, limit=5)
        request = engine.resolve(page, PaginationType.CURSOR, 5)
        assert (request.type, request.offset, request.take) == (PaginationType.OFFSET, 7, 5)

    def test_cursor_page_decodes_token(self, engine):
        token = encode_cursor([("id", 9)], total=30)
        page = PageOperation(PageType.CURSOR, cursor=token, size=10)
        request = engine.resolve(page, PaginationType.OFFSET, 10)
        assert request.is_next
        assert request.cursor == Cursor([("id", 9)], 30)

    def test_malformed_cursor_is_first_page(self, engine):
        page = PageOperation(PageType.CURSOR, cursor="%%%garbage", size=10)
        request = engine.resolve(page, PaginationType.OFFSET, 10)
        assert request.type == PaginationType.CURSOR
        assert request.cursor is None
        assert not request.is_next


class TestBuildState:
    def test_offset_metadata(self, engine):
        request = PaginationRequest(PaginationType.OFFSET, take=2, offset=2)
        state = engine.build_state(request, rows(3, 4), total=5, keys=["id"])
        assert state.type == "offset"
        assert state.total == 5
        assert state.page == 2
        assert state.pages == 3
        assert state.offset == 4
        assert state.limit is None
        assert decode_cursor(state.next_cursor) == Cursor([("id", 4)], 5)

    def test_cursor_metadata(self, engine):
        request = PaginationRequest(PaginationType.CURSOR, take=2)
        state = engine.build_state(request, rows(5, 4), total=5, keys=["id"])
        assert state.type == "cursor"
        assert state.limit == 2
        assert state.total_pages == 3
        assert state.page is None

    def test_next_cursor_reads_relation_paths(self, engine):
        request = PaginationRequest(PaginationType.CURSOR, take=1)
        record = SimpleNamespace(id=2, author=SimpleNamespace(name="Ann"), editor=None)
        state = engine.build_state(
            request, [record], total=3, keys=["author.name", "editor.name", "id"]
        )
        assert decode_cursor(state.next_cursor).values == [
            ("author.name", "Ann"),
            ("editor.name", None),
            ("id", 2),
        ]

    def test_empty_result(self, engine):
        request = PaginationRequest(PaginationType.CURSOR, take=10)
        state = engine.build_state(request, [], total=0, keys=["id"])
        assert state.total_pages == 1
        assert state.next_cursor is None

    def test_camel_case_serialization(self, engine):
        request = PaginationRequest(PaginationType.CURSOR, take=10)
        state = engine.build_state(request, rows(1), total=1, keys=["id"])
        dumped = state.model_dump(by_alias=True, exclude_none=True)
        assert set(dumped) == {"type", "total", "limit", "totalPages", "nextCursor"}
