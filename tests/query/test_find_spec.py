"""
Tests for where-tree helpers and predicate primitives.
"""

from crudcore.query import FindSpec, merge_where, relation_paths, set_path
from crudcore.query import predicates as p


class TestPredicates:
    def test_not_inverts_twice(self):
        assert p.not_(p.not_(p.equal(1))) == p.equal(1)

    def test_as_predicate_wraps_raw_values(self):
        assert p.as_predicate(5) == p.equal(5)
        assert p.as_predicate(p.like("a%")) == p.like("a%")

    def test_combine_extends_existing_all_group(self):
        combined = p.combine(p.all_of(p.more_than(1), p.less_than(9)), p.equal(5))
        assert combined == p.all_of(p.more_than(1), p.less_than(9), p.equal(5))

    def test_combine_does_not_extend_negated_group(self):
        negated = p.not_(p.all_of(p.equal(1)))
        assert p.combine(negated, p.equal(2)) == p.all_of(negated, p.equal(2))

    def test_repr(self):
        assert repr(p.not_(p.equal("x"))) == "not_(equal('x'))"


class TestSetPath:
    def test_creates_intermediate_mappings(self):
        where = {}
        set_path(where, "author.address.city", p.equal("Oslo"))
        assert where == {"author": {"address": {"city": p.equal("Oslo")}}}

    def test_existing_leaf_is_anded(self):
        where = {"age": 18}
        set_path(where, "age", p.less_than(65))
        assert where == {"age": p.all_of(p.equal(18), p.less_than(65))}


class TestMergeWhere:
    def test_merge_into_mapping_does_not_mutate_base(self):
        base = {"status": p.equal("active")}
        merged = merge_where(base, {"tenant_id": p.equal(7)})
        assert merged == {"status": p.equal("active"), "tenant_id": p.equal(7)}
        assert base == {"status": p.equal("active")}

    def test_merge_distributes_over_or_list(self):
        base = [{"id": p.equal(1)}, {"id": p.equal(2)}]
        merged = merge_where(base, {"tenant_id": p.equal(7)})
        assert merged == [
            {"id": p.equal(1), "tenant_id": p.equal(7)},
            {"id": p.equal(2), "tenant_id": p.equal(7)},
        ]

    def test_merge_into_empty(self):
        assert merge_where(None, {"a": p.equal(1)}) == {"a": p.equal(1)}
        assert merge_where([], {"a": p.equal(1)}) == {"a": p.equal(1)}


class TestFindSpec:
    def test_defaults(self):
        spec = FindSpec()
        assert spec.where == {}
        assert spec.order == {}
        assert spec.relations == {}
        assert spec.with_deleted is False
        assert spec.select is None

    def test_copy_is_deep(self):
        spec = FindSpec(where={"a": {"b": p.equal(1)}}, take=5)
        copied = spec.copy(skip=10)
        copied.where["a"]["c"] = p.equal(2)
        assert spec.where == {"a": {"b": p.equal(1)}}
        assert copied.skip == 10
        assert copied.take == 5

    def test_relation_paths(self):
        tree = {"author": True, "comments": {"user": {"avatar": True}, "likes": True}}
        assert relation_paths(tree) == [
            "author",
            "comments",
            "comments.user",
            "comments.user.avatar",
            "comments.likes",
        ]
