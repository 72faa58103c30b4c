"""Checkpointer configuration for workflow persistence.

Checkpointers enable:
- Thread-based workflows (resume with thread_id = workflow_id)
- State persistence across process restarts
- Human-in-the-loop revision (interrupt and resume)
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from langgraph.checkpoint.base import BaseCheckpointSaver
from langgraph.checkpoint.memory import MemorySaver
from langgraph.checkpoint.sqlite.aio import AsyncSqliteSaver

from report_validation.config.settings import PROJECT_ROOT


# Default SQLite database path
DEFAULT_DB_PATH = PROJECT_ROOT / "data" / "checkpoints.db"


def get_memory_saver() -> MemorySaver:
    """
    Get an in-memory checkpointer (development/testing).

    Data is lost when the process ends.

    Returns:
        MemorySaver instance.
    """
    return MemorySaver()


@asynccontextmanager
async def open_sqlite_saver(db_path: Path | str | None = None) -> AsyncIterator[AsyncSqliteSaver]:
    """
    Open a SQLite-backed checkpointer (persistent storage).

    The validation graph runs asynchronously, so the async saver is used.
    The connection is closed when the context exits.

    Args:
        db_path: Path to SQLite database. Defaults to data/checkpoints.db

    Yields:
        AsyncSqliteSaver instance.
    """
    path = Path(db_path) if db_path else DEFAULT_DB_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    async with AsyncSqliteSaver.from_conn_string(str(path)) as saver:
        yield saver


@asynccontextmanager
async def get_checkpointer(
    persistent: bool = False,
    db_path: Path | str | None = None,
) -> AsyncIterator[BaseCheckpointSaver]:
    """
    Get the appropriate checkpointer.

    Args:
        persistent: If True, use SQLite. If False, use in-memory.
        db_path: Custom database path for SQLite.

    Yields:
        Checkpointer instance.

    Example:
        ```python
        async with get_checkpointer(persistent=True) as checkpointer:
            workflow = ValidationWorkflow(
                judge=judge,
                workflow_config=WorkflowConfig(checkpointer=checkpointer),
            )
            result = await workflow.run(report)

        # Later, in another process
        async with get_checkpointer(persistent=True) as checkpointer:
            workflow = ValidationWorkflow(
                judge=judge,
                workflow_config=WorkflowConfig(checkpointer=checkpointer),
            )
            result = await workflow.resume(result.workflow_id, revised_report)
        ```
    """
    if persistent:
        async with open_sqlite_saver(db_path) as saver:
            yield saver
    else:
        yield get_memory_saver()
