"""
todo-ledger — package root

File: src/todo_ledger/__init__.py
Last updated: 2026-10-19

Purpose
- Persistent task tracking for multi-session agent work: task state, integrity checks,
  audit trail, archival and phase heuristics.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

__version__ = "0.4.0"

__all__ = ["__version__"]
