"""
Tests for ParsedQuery to FindSpec conversion.
"""

import pytest

from crudcore.errors import UnsupportedOperationError
from crudcore.query import (
    FilterOperation,
    FilterOperator,
    PageOperation,
    PageType,
    ParsedQuery,
    QueryConverter,
    QueryParser,
    SortDirection,
)
from crudcore.query import predicates as p


@pytest.fixture
def converter():
    return QueryConverter()


def convert(query, supports_full_text=False):
    parsed = QueryParser().parse(query)
    return QueryConverter(supports_full_text).convert(parsed)


class TestOperatorMapping:
    """Each filter operator maps onto the expected predicate."""

    @pytest.mark.parametrize(
        "operator,value,expected",
        [
            (FilterOperator.EQ, "x", p.equal("x")),
            (FilterOperator.NE, "x", p.not_(p.equal("x"))),
            (FilterOperator.GT, "1", p.more_than("1")),
            (FilterOperator.GTE, "1", p.more_than_or_equal("1")),
            (FilterOperator.LT, "1", p.less_than("1")),
            (FilterOperator.LTE, "1", p.less_than_or_equal("1")),
            (FilterOperator.BETWEEN, ["1", "5"], p.between("1", "5")),
            (FilterOperator.LIKE, "a%", p.like("a%")),
            (FilterOperator.START, "a%", p.like("a%")),
            (FilterOperator.END, "%a", p.like("%a")),
            (FilterOperator.CONTAINS, "%a%", p.like("%a%")),
            (FilterOperator.ILIKE, "%A%", p.ilike("%A%")),
            (FilterOperator.IN, ["a", "b"], p.in_(["a", "b"])),
            (FilterOperator.NOT_IN, ["a"], p.not_(p.in_(["a"]))),
            (FilterOperator.NULL, True, p.is_null()),
            (FilterOperator.NOT_NULL, True, p.not_(p.is_null())),
            (
                FilterOperator.PRESENT,
                True,
                p.all_of(p.not_(p.is_null()), p.not_(p.equal(""))),
            ),
            (FilterOperator.BLANK, True, p.any_of(p.is_null(), p.equal(""))),
        ],
    )
    def test_to_predicate(self, converter, operator, value, expected):
        assert converter.to_predicate(FilterOperation("f", operator, value)) == expected

    @pytest.mark.parametrize(
        "operator",
        [
            FilterOperator.NULL,
            FilterOperator.NOT_NULL,
            FilterOperator.PRESENT,
            FilterOperator.BLANK,
        ],
    )
    def test_false_flags_produce_no_predicate(self, converter, operator):
        assert converter.to_predicate(FilterOperation("f", operator, False)) is None

    def test_between_needs_two_values(self, converter):
        operation = FilterOperation("f", FilterOperator.BETWEEN, ["1"])
        assert converter.to_predicate(operation) is None

    def test_skipped_filters_do_not_reach_where(self, converter):
        spec = converter.convert(
            ParsedQuery(filters=[FilterOperation("f", FilterOperator.NULL, False)])
        )
        assert spec.where == {}


class TestWhereBuilding:
    """Tests for where-tree assembly."""

    def test_relation_filters_nest(self):
        spec = convert({"filter[author.name_eq]": "Ann", "filter[title_like]": "A%"})
        assert spec.where == {
            "author": {"name": p.equal("Ann")},
            "title": p.like("A%"),
        }

    def test_same_field_filters_are_anded(self):
        spec = convert({"filter[age_gte]": "18", "filter[age_lt]": "65"})
        assert spec.where == {
            "age": p.all_of(p.more_than_or_equal("18"), p.less_than("65"))
        }


class TestFullText:
    """Tests for the fts operator."""

    def test_fts_rejected_without_store_support(self):
        with pytest.raises(UnsupportedOperationError) as exc:
            convert({"filter[body_fts]": "hello"})
        assert exc.value.status_code == 422
        assert exc.value.details["field"] == "body"

    def test_fts_rejects_blank_term(self):
        with pytest.raises(UnsupportedOperationError):
            convert({"filter[body_fts]": "   "}, supports_full_text=True)

    def test_fts_supported(self):
        spec = convert({"filter[body_fts]": " hello world "}, supports_full_text=True)
        assert spec.where == {"body": p.full_text("hello world")}


class TestOrderAndRelations:
    def test_order_keeps_request_order_and_first_direction(self):
        spec = convert({"sort": "-age,name,age,author.name"})
        assert list(spec.order) == ["age", "name", "author"]
        assert spec.order["age"] == SortDirection.DESC
        assert spec.order["author"] == {"name": SortDirection.ASC}

    def test_relations_tree(self):
        spec = convert({"include": "author,comments.user"})
        assert spec.relations == {"author": True, "comments": {"user": True}}


class TestPaging:
    """Tests for skip/take derivation."""

    @pytest.mark.parametrize(
        "page,expected",
        [
            (PageOperation(PageType.NUMBER, number=3, size=10), (20, 10)),
            (PageOperation(PageType.NUMBER, number=1, size=10), (0, 10)),
            (PageOperation(PageType.OFFSET, offset=15, limit=5), (15, 5)),
            (PageOperation(PageType.CURSOR, cursor="x", size=7), (None, 7)),
        ],
    )
    def test_build_paging(self, page, expected):
        assert QueryConverter.build_paging(page) == expected

    def test_no_page_leaves_skip_and_take_unset(self):
        spec = convert({})
        assert spec.skip is None
        assert spec.take is None
