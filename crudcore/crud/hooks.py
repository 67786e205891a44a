"""
Lifecycle hook pipeline.

Every record that goes through a CRUD operation passes four stages:

    assign_before(body, ctx) -> body
    assign_after(entity, body, ctx) -> entity
    save_before(entity, ctx) -> entity
    save_after(entity, ctx) -> entity

A stage may hold one callable or a list of callables that run in order,
each receiving the previous one's result. Callables may be plain functions
or coroutines. A callable returning ``None`` leaves the value unchanged, so
hooks that mutate in place do not need to return anything.

Example:
    ```python
    def stamp(entity, ctx):
        entity.updated_by = ctx.author.value if ctx.author else None

    hooks = LifecycleHooks(save_before=stamp).chain(audit_hooks)
    ```
"""

import inspect
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

HookFunc = Callable[..., Any]
HookStage = Optional[Union[HookFunc, Sequence[HookFunc]]]


class Method(str, Enum):
    """CRUD operations."""

    INDEX = "index"
    SHOW = "show"
    CREATE = "create"
    UPDATE = "update"
    UPSERT = "upsert"
    DESTROY = "destroy"
    RECOVER = "recover"


class Author:
    """
    Who performed a write.

    Attributes:
        property: Entity attribute that receives the value (e.g. ``updated_by``)
        value: The author identifier
    """

    def __init__(self, property: str, value: Any):
        self.property = property
        self.value = value

    def __repr__(self) -> str:
        return f"Author({self.property!r}, {self.value!r})"


class HookContext:
    """
    Context passed to every hook call.

    Attributes:
        operation: The running operation
        params: Primary key / route parameters of the record
        current_entity: The stored record, when one was fetched
        author: Author of the write, if any
    """

    def __init__(
        self,
        operation: Method,
        params: Optional[Dict[str, Any]] = None,
        current_entity: Any = None,
        author: Optional[Author] = None,
    ):
        self.operation = operation
        self.params = params or {}
        self.current_entity = current_entity
        self.author = author

    def __repr__(self) -> str:
        return f"HookContext({self.operation.value}, params={self.params!r})"


class LifecycleHooks:
    """Composable set of lifecycle hooks. Missing stages are the identity."""

    def __init__(
        self,
        assign_before: HookStage = None,
        assign_after: HookStage = None,
        save_before: HookStage = None,
        save_after: HookStage = None,
    ):
        self.assign_before = _as_list(assign_before)
        self.assign_after = _as_list(assign_after)
        self.save_before = _as_list(save_before)
        self.save_after = _as_list(save_after)

    def chain(self, other: Optional["LifecycleHooks"]) -> "LifecycleHooks":
        """Return hooks running this set first, then ``other``."""
        if other is None:
            return self
        return LifecycleHooks(
            assign_before=self.assign_before + other.assign_before,
            assign_after=self.assign_after + other.assign_after,
            save_before=self.save_before + other.save_before,
            save_after=self.save_after + other.save_after,
        )

    async def run_assign_before(self, body: Dict[str, Any], ctx: HookContext) -> Dict[str, Any]:
        for hook in self.assign_before:
            body = _keep(await _call(hook, body, ctx), body)
        return body

    async def run_assign_after(self, entity: Any, body: Dict[str, Any], ctx: HookContext) -> Any:
        for hook in self.assign_after:
            entity = _keep(await _call(hook, entity, body, ctx), entity)
        return entity

    async def run_save_before(self, entity: Any, ctx: HookContext) -> Any:
        for hook in self.save_before:
            entity = _keep(await _call(hook, entity, ctx), entity)
        return entity

    async def run_save_after(self, entity: Any, ctx: HookContext) -> Any:
        for hook in self.save_after:
            entity = _keep(await _call(hook, entity, ctx), entity)
        return entity

    def __bool__(self) -> bool:
        return bool(self.assign_before or self.assign_after or self.save_before or self.save_after)

    def __repr__(self) -> str:
        return (
            f"LifecycleHooks(assign_before={len(self.assign_before)}, "
            f"assign_after={len(self.assign_after)}, save_before={len(self.save_before)}, "
            f"save_after={len(self.save_after)})"
        )


async def _call(hook: HookFunc, *args: Any) -> Any:
    result = hook(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def _keep(result: Any, previous: Any) -> Any:
    return previous if result is None else result


def _as_list(stage: HookStage) -> List[HookFunc]:
    if stage is None:
        return []
    if callable(stage):
        return [stage]
    return list(stage)
