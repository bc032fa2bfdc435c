"""Module entrypoint for ``python -m ddm_reminder``."""

from __future__ import annotations

from ddm_reminder.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
