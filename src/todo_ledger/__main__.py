"""Module entrypoint for ``python -m todo_ledger``."""

from __future__ import annotations

from todo_ledger.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
