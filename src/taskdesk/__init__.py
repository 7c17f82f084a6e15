# src/taskdesk/__init__.py

"""Multi-user task manager with row-level access control over SQLite."""

__version__ = "0.1.0"
