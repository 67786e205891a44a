"""
Tests for the lifecycle hook pipeline.
"""

import pytest

from crudcore.crud import Author, HookContext, LifecycleHooks, Method


@pytest.fixture
def ctx():
    return HookContext(Method.CREATE, {"id": 1}, author=Author("updated_by", "admin"))


@pytest.mark.asyncio
class TestLifecycleHooks:
    async def test_missing_stages_are_identity(self, ctx):
        hooks = LifecycleHooks()
        body = {"name": "x"}
        assert await hooks.run_assign_before(body, ctx) is body
        assert await hooks.run_save_after("entity", ctx) == "entity"
        assert not hooks

    async def test_list_runs_in_order(self, ctx):
        hooks = LifecycleHooks(
            assign_before=[
                lambda body, ctx: {**body, "step": [1]},
                lambda body, ctx: {**body, "step": body["step"] + [2]},
            ]
        )
        assert (await hooks.run_assign_before({}, ctx))["step"] == [1, 2]

    async def test_none_result_keeps_value(self, ctx):
        def mutate(body, ctx):
            body["touched"] = True

        result = await LifecycleHooks(assign_before=mutate).run_assign_before({}, ctx)
        assert result == {"touched": True}

    async def test_coroutines_are_awaited(self, ctx):
        async def upper(entity, ctx):
            return entity.upper()

        assert await LifecycleHooks(save_before=upper).run_save_before("abc", ctx) == "ABC"

    async def test_assign_after_receives_body_and_context(self, ctx):
        received = []

        def hook(entity, body, ctx):
            received.append((entity, body, ctx.author.value, ctx.params))

        await LifecycleHooks(assign_after=hook).run_assign_after("e", {"a": 1}, ctx)
        assert received == [("e", {"a": 1}, "admin", {"id": 1})]

    async def test_chain_runs_own_hooks_first(self, ctx):
        order = []
        first = LifecycleHooks(save_after=lambda e, c: order.append("first"))
        second = LifecycleHooks(save_after=lambda e, c: order.append("second"))

        chained = first.chain(second)
        await chained.run_save_after(None, ctx)
        assert order == ["first", "second"]
        assert first.chain(None) is first
        assert "save_after=2" in repr(chained)


def test_context_defaults():
    ctx = HookContext(Method.SHOW)
    assert ctx.params == {}
    assert ctx.current_entity is None
    assert ctx.author is None
    assert repr(ctx) == "HookContext(show, params={})"


def test_method_values():
    assert Method("upsert") is Method.UPSERT
    assert Method.RECOVER.value == "recover"
