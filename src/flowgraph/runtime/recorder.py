"""
Run Recorder - persists finished runs to the history store.

Writes happen in a worker thread so a slow store never blocks the event
loop. A failed write is logged; the run's outcome does not depend on it.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional, TYPE_CHECKING

from flowgraph.observability import get_logger, with_run_context

from .records import RunSummary

if TYPE_CHECKING:
    from flowgraph.storage.history_store import HistoryStore


logger = get_logger(__name__)


class RunRecorder:
    """
    Bridge between the executor and a HistoryStore.

    Usage:
        recorder = RunRecorder(get_history_store())
        executor = WorkflowExecutor(recorder=recorder)
    """

    def __init__(self, store: "HistoryStore"):
        self.store = store

    async def record(self, summary: RunSummary) -> None:
        """Append a terminal run to the store."""
        extra = with_run_context(run_id=summary.run_id, workflow_id=summary.workflow_id)
        try:
            await asyncio.to_thread(self.store.append, summary)
        except Exception:
            logger.exception("Failed to write run to history", extra=extra)
            return
        logger.debug("Run written to history", extra={**extra, "status": summary.status.value})

    async def history(self, limit: int = 50, workflow_id: Optional[str] = None) -> List[RunSummary]:
        """Most recent runs first."""
        return await asyncio.to_thread(self.store.list, limit, workflow_id)

    async def get(self, run_id: str) -> Optional[RunSummary]:
        return await asyncio.to_thread(self.store.get, run_id)


__all__ = ["RunRecorder"]
