"""Dependency batching over steps and step templates.

This module implements a minimal "frontier" scheduler over step dependencies. Rather
than constructing a full graph, it repeatedly scans a provided collection of nodes and
yields successive batches whose prerequisites are satisfied.

A node is anything with an `id` and a `dependencies` sequence of ids
(`taskspace.plan.Step`, `taskspace.catalog.StepTemplate`).

Batching semantics
- Each yielded batch contains every remaining node that is runnable at the moment the
  batch is computed: a node is runnable when all ids in `node.dependencies` return
  truthy from `is_done(dep_id)`.
- Batches are greedy levels, not a full topological ordering: nodes appear in the
  earliest batch for which their dependencies are satisfied.
- `is_done()` is invoked at evaluation time, so callers may back it with a changing
  data source (for example, the set of ids already emitted).
- Within a batch, ordering follows the caller's input order.

Deadlock
- If nodes remain but none are runnable, scheduling stops by raising `RuntimeError`.
  This indicates a dependency cycle among the remaining nodes or a dependency that is
  external to `nodes` and not done.
- `KeyError` from `is_done()` counts as "not done".

`topological_order()` drives the batches itself (a node is done once emitted) and is
what catalog validation uses to reject cycles.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Sequence
from typing import Protocol, TypeVar


class DependencyNode(Protocol):
    @property
    def id(self) -> str: ...

    @property
    def dependencies(self) -> Sequence[str]: ...


N = TypeVar("N", bound=DependencyNode)


def dependency_batches(nodes: Iterable[N], *, is_done: Callable[[str], bool]) -> Iterator[list[N]]:
    """Yield batches of nodes whose dependencies are satisfied.

    Raises RuntimeError if nothing is runnable while nodes remain.
    """
    nodes = list(nodes)
    remaining: dict[str, N] = {n.id: n for n in nodes}

    while remaining:
        ready_ids = {
            node_id
            for node_id, node in remaining.items()
            if all(_safe_is_done(is_done, d) for d in (node.dependencies or ()))
        }

        if not ready_ids:
            stuck = sorted(remaining.keys())
            raise RuntimeError(f"No runnable steps; dependency cycle or unmet prerequisite(s): {stuck}")

        batch = [n for n in nodes if n.id in ready_ids and n.id in remaining]
        yield batch

        for node in batch:
            remaining.pop(node.id, None)


def topological_order(nodes: Iterable[N], *, satisfied: Iterable[str] = ()) -> list[N]:
    """Order `nodes` so each comes after its dependencies.

    `satisfied` lists ids outside `nodes` that count as already done.
    """
    done: set[str] = set(satisfied)
    ordered: list[N] = []
    for batch in dependency_batches(nodes, is_done=lambda dep: dep in done):
        ordered.extend(batch)
        done.update(n.id for n in batch)
    return ordered


def _safe_is_done(is_done: Callable[[str], bool], dep_id: str) -> bool:
    try:
        return bool(is_done(dep_id))
    except KeyError:
        return False
