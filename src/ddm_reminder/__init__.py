"""
ddm-reminder — deadline-driven OS update reminders for managed fleets.

File: src/ddm_reminder/__init__.py

Purpose
- Package root. Exposes the release version and keeps import time side-effect free.

Functional requirements
- Must not load configuration, touch the ledger, or configure logging on import.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
