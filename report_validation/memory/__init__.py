"""Memory module for workflow persistence."""

from report_validation.memory.checkpointer import (
    DEFAULT_DB_PATH,
    get_checkpointer,
    get_memory_saver,
    open_sqlite_saver,
)

__all__ = [
    "DEFAULT_DB_PATH",
    "get_checkpointer",
    "get_memory_saver",
    "open_sqlite_saver",
]
