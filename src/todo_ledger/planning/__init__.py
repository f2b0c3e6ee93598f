"""Dependency graph utilities."""

from todo_ledger.planning.dependency_graph import DependencyGraph

__all__ = ["DependencyGraph"]
