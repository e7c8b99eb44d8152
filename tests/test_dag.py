from __future__ import annotations

import pytest

from taskspace.catalog import StepTemplate
from taskspace.dag import dependency_batches, topological_order


def _node(step_id: str, deps: list[str] | None = None) -> StepTemplate:
    return StepTemplate(id=step_id, name=step_id, dependencies=tuple(deps or []))


def test_dependency_batches_emits_frontier_batches_in_input_order() -> None:
    nodes = [
        _node("a"),
        _node("b", ["a"]),
        _node("c"),
        _node("d", ["b", "c"]),
    ]
    done: set[str] = set()

    observed: list[list[str]] = []
    for batch in dependency_batches(nodes, is_done=lambda d: d in done):
        observed.append([n.id for n in batch])
        done.update(n.id for n in batch)

    assert observed == [["a", "c"], ["b"], ["d"]]


def test_dependency_batches_raises_for_cycle() -> None:
    nodes = [_node("a", ["b"]), _node("b", ["a"])]

    with pytest.raises(RuntimeError, match="dependency cycle or unmet prerequisite"):
        list(dependency_batches(nodes, is_done=lambda _: False))


def test_dependency_batches_treats_key_error_from_is_done_as_not_done() -> None:
    nodes = [_node("a"), _node("b", ["missing"])]
    done: set[str] = set()

    def is_done(step_id: str) -> bool:
        if step_id == "missing":
            raise KeyError(step_id)
        return step_id in done

    gen = dependency_batches(nodes, is_done=is_done)
    first = next(gen)
    done.update(n.id for n in first)
    assert [n.id for n in first] == ["a"]

    with pytest.raises(RuntimeError, match="\\['b'\\]"):
        next(gen)


def test_topological_order_accepts_satisfied_external_ids() -> None:
    nodes = [_node("design", ["analyze"]), _node("review", ["design"])]

    ordered = topological_order(nodes, satisfied={"analyze"})

    assert [n.id for n in ordered] == ["design", "review"]


def test_topological_order_rejects_unsatisfied_external_ids() -> None:
    with pytest.raises(RuntimeError):
        topological_order([_node("design", ["analyze"])])
