from __future__ import annotations

from collections.abc import Awaitable, Callable

from .domain.amm_subgraph_task import index_amm_subgraph_task as domain__index_amm_subgraph_task

TaskFn = Callable[..., Awaitable[None]]

TASKS: dict[str, TaskFn] = {
    "domain__index_amm_subgraph_task": domain__index_amm_subgraph_task,
}
