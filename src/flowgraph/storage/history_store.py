"""Execution history stores: in-memory, JSON file and Redis."""
import json
import threading
from collections import deque
from pathlib import Path
from typing import Protocol

import redis

from flowgraph.config import get_settings
from flowgraph.observability import get_logger
from flowgraph.runtime.records import RunSummary

logger = get_logger(__name__)


class HistoryStore(Protocol):
    """Append-only, bounded store of finished runs (most recent first)."""

    def append(self, summary: RunSummary) -> None:
        ...

    def list(self, limit: int = 50, workflow_id: str | None = None) -> list[RunSummary]:
        ...

    def get(self, run_id: str) -> RunSummary | None:
        ...


class InMemoryHistoryStore:
    """Process-local history, newest first, capped at max_entries."""

    def __init__(self, max_entries: int = 100):
        self.max_entries = max_entries
        self._runs: deque[RunSummary] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    def append(self, summary: RunSummary) -> None:
        with self._lock:
            self._runs.appendleft(summary)

    def list(self, limit: int = 50, workflow_id: str | None = None) -> list[RunSummary]:
        with self._lock:
            runs = list(self._runs)
        if workflow_id is not None:
            runs = [run for run in runs if run.workflow_id == workflow_id]
        return runs[: max(limit, 0)]

    def get(self, run_id: str) -> RunSummary | None:
        with self._lock:
            for run in self._runs:
                if run.run_id == run_id:
                    return run
        return None

    def clear(self) -> None:
        with self._lock:
            self._runs.clear()


class JsonFileHistoryStore:
    """
    History kept in a single JSON array file, newest first.

    The file is rewritten atomically (temp file + replace) on every append.
    """

    def __init__(self, path: str | Path, max_entries: int = 100):
        """
        Initialize JSON file store.

        Args:
            path: History file (parent directories are created)
            max_entries: Cap on the number of runs kept
        """
        self.path = Path(path)
        self.max_entries = max_entries
        self._lock = threading.Lock()

    def _read(self) -> list[dict]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("History file is corrupt, starting fresh", extra={"path": str(self.path)})
            return []
        return data if isinstance(data, list) else []

    def append(self, summary: RunSummary) -> None:
        with self._lock:
            runs = self._read()
            runs.insert(0, summary.to_dict())
            del runs[self.max_entries:]

            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(runs, indent=2), encoding="utf-8")
            tmp_path.replace(self.path)

    def list(self, limit: int = 50, workflow_id: str | None = None) -> list[RunSummary]:
        with self._lock:
            runs = self._read()
        if workflow_id is not None:
            runs = [run for run in runs if run.get("workflowId") == workflow_id]
        return [RunSummary.from_dict(run) for run in runs[: max(limit, 0)]]

    def get(self, run_id: str) -> RunSummary | None:
        with self._lock:
            runs = self._read()
        for run in runs:
            if run.get("runId") == run_id:
                return RunSummary.from_dict(run)
        return None


class RedisHistoryStore:
    """
    Redis-backed history.

    Each run is stored under ``execution:<run_id>`` with an expiry; the
    global list and a per-workflow list hold run ids newest first
    (LPUSH + LTRIM). Runs trimmed off the global list are deleted.
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        max_entries: int = 100,
        ttl_s: int | None = None,
    ):
        """
        Initialize Redis history store.

        Args:
            redis_client: Optional Redis client (will create one if not provided)
            max_entries: Cap on each history list
            ttl_s: Expiry of each stored run (settings.history_ttl_s if not provided)
        """
        settings = get_settings()
        if redis_client is None:
            self.redis_client = redis.from_url(
                settings.redis_url,
                decode_responses=True,
            )
        else:
            self.redis_client = redis_client

        self.max_entries = max_entries
        self.ttl_s = ttl_s if ttl_s is not None else settings.history_ttl_s
        self._run_prefix = "execution:"
        self._list_key = "executions"
        self._workflow_prefix = "executions:workflow:"

    def _run_key(self, run_id: str) -> str:
        """Get Redis key for a run."""
        return f"{self._run_prefix}{run_id}"

    def _workflow_key(self, workflow_id: str) -> str:
        """Get Redis key for a workflow's run list."""
        return f"{self._workflow_prefix}{workflow_id}"

    def append(self, summary: RunSummary) -> None:
        # Ids pushed past the cap by this append; their runs are deleted with the trim.
        evicted = self.redis_client.lrange(self._list_key, self.max_entries - 1, -1)

        pipe = self.redis_client.pipeline()
        pipe.setex(
            self._run_key(summary.run_id),
            self.ttl_s,
            summary.model_dump_json(by_alias=True, exclude_none=True),
        )
        pipe.lpush(self._list_key, summary.run_id)
        pipe.ltrim(self._list_key, 0, self.max_entries - 1)
        if evicted:
            pipe.delete(*[self._run_key(run_id) for run_id in evicted])
        if summary.workflow_id:
            pipe.lpush(self._workflow_key(summary.workflow_id), summary.run_id)
            pipe.ltrim(self._workflow_key(summary.workflow_id), 0, self.max_entries - 1)
        pipe.execute()

        logger.debug(
            "Run stored",
            extra={"run_id": summary.run_id, "workflow_id": summary.workflow_id},
        )

    def list(self, limit: int = 50, workflow_id: str | None = None) -> list[RunSummary]:
        if limit <= 0:
            return []
        key = self._workflow_key(workflow_id) if workflow_id is not None else self._list_key
        run_ids = self.redis_client.lrange(key, 0, limit - 1)
        if not run_ids:
            return []
        payloads = self.redis_client.mget([self._run_key(run_id) for run_id in run_ids])
        return [RunSummary.model_validate_json(payload) for payload in payloads if payload]

    def get(self, run_id: str) -> RunSummary | None:
        payload = self.redis_client.get(self._run_key(run_id))
        if payload is None:
            return None
        return RunSummary.model_validate_json(payload)


def get_history_store(backend: str | None = None) -> HistoryStore:
    """Create the history store for backend, or the one selected by settings.history_backend."""
    settings = get_settings()
    backend = backend or settings.history_backend

    if backend == "json":
        return JsonFileHistoryStore(settings.history_path, max_entries=settings.history_limit)
    if backend == "redis":
        return RedisHistoryStore(max_entries=settings.history_limit)
    if backend != "memory":
        raise ValueError(f"Unknown history backend: {backend}")
    return InMemoryHistoryStore(max_entries=settings.history_limit)
