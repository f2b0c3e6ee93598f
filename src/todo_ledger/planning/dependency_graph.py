"""Deterministic task dependency graph (edge: task -> dependency)."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from todo_ledger.domain.models import Task


class DependencyGraph:
    """Directed graph over task IDs with deterministic traversal order."""

    __slots__ = ("_nodes", "_dependencies", "_dependents")

    def __init__(
        self,
        nodes: Iterable[str] | None = None,
        edges: Iterable[tuple[str, str]] | None = None,
    ) -> None:
        self._nodes: set[str] = set()
        self._dependencies: dict[str, set[str]] = {}
        self._dependents: dict[str, set[str]] = {}

        if nodes is not None:
            for node_id in nodes:
                self.add_node(node_id)

        if edges is not None:
            for task_id, dependency_id in edges:
                self.add_edge(task_id, dependency_id)

    @classmethod
    def from_tasks(cls, tasks: Iterable[Task]) -> DependencyGraph:
        """
        Build the graph for a task collection.

        Dependencies on IDs outside the collection are skipped; existence is a
        separate check and dangling edges cannot take part in a cycle.
        """
        ordered = tuple(tasks)
        graph = cls(nodes=(task.id for task in ordered))
        for task in ordered:
            for dependency_id in task.depends:
                if dependency_id in graph._nodes:
                    graph.add_edge(task.id, dependency_id)
        return graph

    @property
    def nodes(self) -> tuple[str, ...]:
        """All node IDs in deterministic order."""
        return tuple(sorted(self._nodes))

    @property
    def edges(self) -> tuple[tuple[str, str], ...]:
        """All edges as ``(task, dependency)`` pairs in deterministic order."""
        return tuple(
            (task_id, dependency_id)
            for task_id in sorted(self._nodes)
            for dependency_id in sorted(self._dependencies[task_id])
        )

    def add_node(self, node_id: str) -> None:
        self._validate_node_id(node_id)
        if node_id in self._nodes:
            return
        self._nodes.add(node_id)
        self._dependencies[node_id] = set()
        self._dependents[node_id] = set()

    def add_edge(self, task_id: str, dependency_id: str) -> None:
        """Record that ``task_id`` requires ``dependency_id``."""
        self.add_node(task_id)
        self.add_node(dependency_id)
        self._dependencies[task_id].add(dependency_id)
        self._dependents[dependency_id].add(task_id)

    def detect_cycles(self) -> tuple[tuple[str, ...], ...]:
        """
        Detect directed cycles with an iterative depth-first search.

        Start nodes and neighbours are visited in ascending ID order, so the same
        input always yields the same report. Each cycle is returned once as a
        closed path rotated to begin at its smallest ID, e.g. ``("T1", "T2", "T1")``.
        """
        state: dict[str, int] = {}
        stack: list[str] = []
        stack_index: dict[str, int] = {}
        cycles: dict[tuple[str, ...], None] = {}

        for start in sorted(self._nodes):
            if state.get(start, 0) != 0:
                continue

            state[start] = 1
            stack.append(start)
            stack_index[start] = 0
            frames: list[tuple[str, Iterator[str]]] = [
                (start, iter(sorted(self._dependencies[start])))
            ]

            while frames:
                node, neighbours = frames[-1]
                try:
                    neighbour = next(neighbours)
                except StopIteration:
                    frames.pop()
                    state[node] = 2
                    stack.pop()
                    del stack_index[node]
                    continue

                neighbour_state = state.get(neighbour, 0)
                if neighbour_state == 0:
                    state[neighbour] = 1
                    stack_index[neighbour] = len(stack)
                    stack.append(neighbour)
                    frames.append((neighbour, iter(sorted(self._dependencies[neighbour]))))
                elif neighbour_state == 1:
                    # Back edge into the recursion stack closes a cycle.
                    cycle = (*stack[stack_index[neighbour] :], neighbour)
                    cycles[_canonicalize_cycle(cycle)] = None

        return tuple(cycles)

    def dependencies_of(self, task_id: str, *, transitive: bool = False) -> tuple[str, ...]:
        self._assert_node_exists(task_id)
        if not transitive:
            return tuple(sorted(self._dependencies[task_id]))
        return self._closure(task_id, self._dependencies)

    def dependents_of(self, task_id: str, *, transitive: bool = False) -> tuple[str, ...]:
        """Tasks that (directly or transitively) require ``task_id``."""
        self._assert_node_exists(task_id)
        if not transitive:
            return tuple(sorted(self._dependents[task_id]))
        return self._closure(task_id, self._dependents)

    def _closure(self, node_id: str, adjacency: dict[str, set[str]]) -> tuple[str, ...]:
        visited: set[str] = set()
        pending = list(adjacency[node_id])
        while pending:
            node = pending.pop()
            if node in visited:
                continue
            visited.add(node)
            pending.extend(neighbour for neighbour in adjacency[node] if neighbour not in visited)
        return tuple(sorted(visited))

    @staticmethod
    def _validate_node_id(node_id: str) -> None:
        if not isinstance(node_id, str) or not node_id:
            raise ValueError("Node ID must be a non-empty string.")

    def _assert_node_exists(self, node_id: str) -> None:
        if node_id not in self._nodes:
            raise KeyError(f"Unknown task: {node_id}")


def _canonicalize_cycle(cycle: Sequence[str]) -> tuple[str, ...]:
    if len(cycle) < 2:
        raise ValueError("Cycle path must contain at least two nodes.")

    core = tuple(cycle[:-1])
    best = core
    for offset in range(1, len(core)):
        rotated = core[offset:] + core[:offset]
        if rotated < best:
            best = rotated
    return (*best, best[0])


__all__ = ["DependencyGraph"]
