"""Dependency validation over task snapshots.

Every function here works on a snapshot supplied by the caller: a sequence of
tasks whose ``dependencies`` lists point from a dependent task to its
prerequisites. Nothing is cached between calls and the input is never mutated.

The results are only as good as the snapshot. Two writers validating against
the same stale snapshot can both pass; serializing edge mutations is the job
of the store (see ``storage.task_store.TaskStore.set_dependencies``).
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field

from tasks.types import Task, TaskStatus

logger = logging.getLogger("tg.dependency_graph")

DEFAULT_CLOSURE_THRESHOLD = 200

_ON_PATH = 1
_DONE = 2


@dataclass(frozen=True)
class DependencyGraph:
    """Both edge directions of one snapshot, indexed once.

    ``prerequisites`` maps a task to what it depends on, ``dependents`` maps
    a task to what depends on it. Ids that are only referenced as a
    dependency are not nodes.
    """

    prerequisites: dict[str, list[str]] = field(default_factory=dict)
    dependents: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def from_tasks(cls, all_tasks: Iterable[Task]) -> DependencyGraph:
        prerequisites = build_adjacency(all_tasks)
        dependents: dict[str, list[str]] = defaultdict(list)
        for task_id, deps in prerequisites.items():
            for dep in deps:
                dependents[dep].append(task_id)
        return cls(prerequisites=prerequisites, dependents=dict(dependents))

    @property
    def nodes(self) -> list[str]:
        return list(self.prerequisites)

    @property
    def edges(self) -> list[tuple[str, str]]:
        return [(task_id, dep) for task_id, deps in self.prerequisites.items() for dep in deps]

    def prerequisites_of(self, task_id: str) -> list[str]:
        return list(self.prerequisites.get(task_id, ()))

    def dependents_of(self, task_id: str) -> list[str]:
        return list(self.dependents.get(task_id, ()))

    def dependents_closure(self, task_id: str) -> set[str]:
        """All ids that depend on ``task_id`` directly or transitively."""
        seen: set[str] = set()
        stack = list(self.dependents.get(task_id, ()))
        while stack:
            node = stack.pop()
            if node in seen:
                continue
            seen.add(node)
            stack.extend(self.dependents.get(node, ()))
        return seen


def build_adjacency(all_tasks: Iterable[Task]) -> dict[str, list[str]]:
    """Map task id to prerequisite ids, in snapshot order.

    Duplicate task ids are merged; their dependency lists are unioned so no
    edge is lost when deciding about cycles.
    """
    adjacency: dict[str, list[str]] = {}
    for task in all_tasks:
        deps = adjacency.setdefault(task.id, [])
        for dep in task.dependencies:
            if dep not in deps:
                deps.append(dep)
    return adjacency


def completed_ids(all_tasks: Iterable[Task]) -> set[str]:
    """Ids whose every snapshot entry is completed."""
    completed: set[str] = set()
    not_completed: set[str] = set()
    for task in all_tasks:
        if task.status == TaskStatus.COMPLETED:
            completed.add(task.id)
        else:
            not_completed.add(task.id)
    return completed - not_completed


def _reaches(adjacency: dict[str, list[str]], start: str, target: str) -> bool:
    visited: set[str] = set()
    stack = [start]
    while stack:
        node = stack.pop()
        if node == target:
            return True
        if node in visited:
            continue
        visited.add(node)
        stack.extend(adjacency.get(node, ()))
    return False


def would_create_cycle(
    all_tasks: Sequence[Task],
    dependent_id: str,
    prerequisite_id: str,
) -> bool:
    """Return True if adding ``dependent_id -> prerequisite_id`` closes a cycle.

    A self-dependency always counts as a cycle. Otherwise the prerequisite's
    own dependency chain is searched; reaching the dependent means the new
    edge would point back into its own ancestry.
    """
    dependent_id = str(dependent_id)
    prerequisite_id = str(prerequisite_id)
    if dependent_id == prerequisite_id:
        return True
    cyclic = _reaches(build_adjacency(all_tasks), prerequisite_id, dependent_id)
    logger.debug(
        "cycle check %s -> %s: %s", dependent_id, prerequisite_id, "cycle" if cyclic else "ok"
    )
    return cyclic


def list_eligible_dependencies(
    all_tasks: Sequence[Task],
    target_id: str,
    current_dependency_ids: Iterable[str],
    closure_threshold: int = DEFAULT_CLOSURE_THRESHOLD,
) -> list[Task]:
    """Tasks that can be added as a dependency of ``target_id`` without a cycle.

    The target itself and its current dependencies are excluded. Above
    ``closure_threshold`` tasks the dependents of the target are collected in
    one pass instead of searching once per candidate.
    """
    target_id = str(target_id)
    current = {str(dep) for dep in current_dependency_ids}
    graph = DependencyGraph.from_tasks(all_tasks)

    if len(graph.prerequisites) > closure_threshold:
        blocked = graph.dependents_closure(target_id)

        def forms_cycle(candidate: str) -> bool:
            return candidate in blocked

    else:

        def forms_cycle(candidate: str) -> bool:
            return _reaches(graph.prerequisites, candidate, target_id)

    return [
        task
        for task in all_tasks
        if task.id != target_id and task.id not in current and not forms_cycle(task.id)
    ]


def list_blocked_tasks(all_tasks: Sequence[Task], prerequisite_id: str) -> list[Task]:
    """Tasks that list ``prerequisite_id`` as a direct dependency.

    Only immediate dependents are returned, never transitive ones.
    """
    prerequisite_id = str(prerequisite_id)
    return [task for task in all_tasks if prerequisite_id in task.dependencies]


def is_task_startable(task: Task, all_tasks: Sequence[Task]) -> bool:
    """True when every dependency of ``task`` is a completed task in the snapshot.

    A dependency id missing from the snapshot blocks the task.
    """
    if not task.dependencies:
        return True
    done = completed_ids(all_tasks)
    return all(dep in done for dep in task.dependencies)


def dangling_dependencies(all_tasks: Sequence[Task]) -> dict[str, list[str]]:
    """Dependency ids that point at tasks absent from the snapshot."""
    adjacency = build_adjacency(all_tasks)
    dangling: dict[str, list[str]] = {}
    for task_id, deps in adjacency.items():
        missing = [dep for dep in deps if dep not in adjacency]
        if missing:
            dangling[task_id] = missing
    return dangling


def find_cycle(all_tasks: Sequence[Task]) -> list[str] | None:
    """Return one cycle as a closed path (first id repeated last), or None."""
    adjacency = build_adjacency(all_tasks)
    state: dict[str, int] = {}
    for root in adjacency:
        if root in state:
            continue
        path = [root]
        state[root] = _ON_PATH
        stack: list[tuple[str, Iterator[str]]] = [(root, iter(adjacency[root]))]
        while stack:
            node, children = stack[-1]
            for child in children:
                if child not in adjacency:
                    continue
                mark = state.get(child)
                if mark == _ON_PATH:
                    return path[path.index(child):] + [child]
                if mark is None:
                    state[child] = _ON_PATH
                    path.append(child)
                    stack.append((child, iter(adjacency[child])))
                    break
            else:
                state[node] = _DONE
                path.pop()
                stack.pop()
    return None
