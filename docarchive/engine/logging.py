"""
DocArchive Logging — stdlib logger setup plus a structured JSONL activity log.

Implements:
- configure_logging: level/format for the ``docarchive`` logger tree
- FileLogger: per-area activity files (daily rotation)
- AsyncLogQueue: non-blocking push, background thread writes batches
- Log entry builders for each event type
- Global activity log singleton (init / log / shutdown)

Files: {log_dir}/{area}/{YYYY-MM-DD}.jsonl

log() is called from event-loop code (every backend call, every role-gate
transition), so it only pushes to an in-memory queue; file I/O happens on the
flush thread.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from queue import Empty, Full, Queue
from typing import Any, Dict, List, Optional

logger = logging.getLogger("docarchive.engine.logging")

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

ACTIVITY_AREAS = ("documents", "taxonomy", "security", "backend", "system")


def configure_logging(level: str = "INFO", fmt: str = LOG_FORMAT) -> logging.Logger:
    """Attach a stream handler to the ``docarchive`` logger (idempotent)."""
    root = logging.getLogger("docarchive")
    root.setLevel(level.upper())
    if not any(getattr(h, "_docarchive", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt))
        handler._docarchive = True
        root.addHandler(handler)
    return root


class LogEntry:
    """A structured log entry destined for a specific area file."""

    __slots__ = ("area", "data")

    def __init__(self, area: str, data: Dict[str, Any]):
        self.area = area
        self.data = data

    def to_json(self) -> str:
        return json.dumps(self.data, default=str, separators=(",", ":"))


class FileLogger:
    """
    Writes structured JSON log entries to per-area files.
    Files rotate daily: logs/{area}/{YYYY-MM-DD}.jsonl

    Thread-safe: one lock per file path.
    """

    def __init__(self, log_dir: str = "logs"):
        self._log_dir = Path(log_dir)
        self._file_locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
        for area in ACTIVITY_AREAS:
            (self._log_dir / area).mkdir(parents=True, exist_ok=True)

    def write(self, entry: LogEntry) -> None:
        """Write a single log entry to the appropriate file."""
        file_path = self._resolve_path(entry.area)
        key = str(file_path)

        with self._file_locks[key]:
            with open(file_path, "a", encoding="utf-8") as f:
                f.write(entry.to_json())
                f.write("\n")

    def write_batch(self, entries: List[LogEntry]) -> None:
        """Write a batch of entries, one open() per file."""
        grouped: Dict[str, List[LogEntry]] = defaultdict(list)
        for entry in entries:
            grouped[str(self._resolve_path(entry.area))].append(entry)

        for file_path, batch in grouped.items():
            with self._file_locks[file_path]:
                with open(file_path, "a", encoding="utf-8") as f:
                    for entry in batch:
                        f.write(entry.to_json())
                        f.write("\n")

    def _resolve_path(self, area: str) -> Path:
        """Resolve the log file path for today's date."""
        if area not in ACTIVITY_AREAS:
            area = "system"
        return self._log_dir / area / f"{date.today().isoformat()}.jsonl"

    @property
    def log_dir(self) -> Path:
        return self._log_dir

    def query(
        self,
        area: str,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        filters: Optional[Dict[str, Any]] = None,
        limit: int = 500,
    ) -> List[Dict[str, Any]]:
        """
        Query entries for an area, newest first.

        Args:
            area: One of ACTIVITY_AREAS.
            start_date: Earliest date to include (defaults to 7 days ago).
            end_date: Latest date to include (defaults to today).
            filters: Exact-match key/value pairs on top-level entry keys.
            limit: Max number of entries to return.
        """
        if end_date is None:
            end_date = date.today()
        if start_date is None:
            start_date = end_date - timedelta(days=7)

        base = self._log_dir / area
        if not base.exists():
            return []

        results: List[Dict[str, Any]] = []
        current = end_date
        while current >= start_date and len(results) < limit:
            file_path = base / f"{current.isoformat()}.jsonl"
            if file_path.exists():
                day = self._read_jsonl(file_path, filters)
                day.reverse()
                results.extend(day[: limit - len(results)])
            current -= timedelta(days=1)
        return results

    @staticmethod
    def _read_jsonl(path: Path, filters: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
        entries: List[Dict[str, Any]] = []
        try:
            with open(path, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        data = json.loads(line)
                    except json.JSONDecodeError:
                        continue
                    if filters and not all(data.get(k) == v for k, v in filters.items()):
                        continue
                    entries.append(data)
        except OSError as exc:
            logger.warning("Could not read log file %s: %s", path, exc)
        return entries


class AsyncLogQueue:
    """
    In-memory queue with a background flush thread.

    Entries are pushed non-blocking. The flush thread writes them to the
    FileLogger every flush_interval_ms or when flush_batch_size entries
    accumulate, whichever comes first. When the queue is full new entries
    are dropped and counted.
    """

    def __init__(
        self,
        file_logger: FileLogger,
        flush_interval_ms: int = 100,
        flush_batch_size: int = 50,
        max_queue_size: int = 10000,
    ):
        self._logger = file_logger
        self._flush_interval = flush_interval_ms / 1000.0
        self._flush_batch_size = flush_batch_size
        self._queue: Queue[LogEntry] = Queue(maxsize=max_queue_size)
        # Held while a batch is taken off the queue and written
        self._write_lock = threading.Lock()
        self._running = False
        self._flush_thread: Optional[threading.Thread] = None
        self._dropped_count = 0

    def start(self) -> None:
        """Start the background flush thread."""
        if self._running:
            return
        self._running = True
        self._flush_thread = threading.Thread(
            target=self._flush_loop,
            name="docarchive-log-flush",
            daemon=True,
        )
        self._flush_thread.start()
        logger.debug("Activity log queue started")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the flush thread and drain remaining entries."""
        self._running = False
        if self._flush_thread and self._flush_thread.is_alive():
            self._flush_thread.join(timeout=timeout)
        self.flush()
        logger.debug(f"Activity log queue stopped (dropped: {self._dropped_count})")

    def push(self, entry: LogEntry) -> bool:
        """
        Push an entry to the queue. Non-blocking.

        Returns:
            True if queued, False if dropped (queue full).
        """
        try:
            self._queue.put_nowait(entry)
            return True
        except Full:
            self._dropped_count += 1
            return False

    def flush(self) -> None:
        """Write everything pushed so far, in the calling thread."""
        with self._write_lock:
            self._drain()

    def query(self, area: str, **kwargs: Any) -> List[Dict[str, Any]]:
        """Flush, then read entries newest first (see FileLogger.query)."""
        self.flush()
        return self._logger.query(area, **kwargs)

    def _flush_loop(self) -> None:
        while self._running:
            with self._write_lock:
                batch = self._collect_batch()
                if batch:
                    self._write(batch)
            if not batch:
                time.sleep(self._flush_interval)

    def _collect_batch(self) -> List[LogEntry]:
        """Collect up to flush_batch_size entries within one flush interval."""
        batch: List[LogEntry] = []
        deadline = time.monotonic() + self._flush_interval

        while len(batch) < self._flush_batch_size:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                batch.append(self._queue.get(timeout=min(remaining, 0.01)))
            except Empty:
                if batch:
                    break
        return batch

    def _drain(self) -> None:
        batch: List[LogEntry] = []
        while True:
            try:
                batch.append(self._queue.get_nowait())
            except Empty:
                break
        if batch:
            self._write(batch)

    def _write(self, batch: List[LogEntry]) -> None:
        try:
            self._logger.write_batch(batch)
        except OSError as e:
            logger.error(f"Activity log write failed: {e}")

    @property
    def file_logger(self) -> FileLogger:
        return self._logger

    @property
    def pending_count(self) -> int:
        return self._queue.qsize()

    @property
    def dropped_count(self) -> int:
        return self._dropped_count


# ---------------------------------------------------------------------------
# Log Entry Builders
# ---------------------------------------------------------------------------

def _base_entry(
    event: str,
    level: str,
    principal: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Build a base log entry with common fields."""
    entry: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": level,
        "event": event,
    }
    if principal:
        entry["principal"] = principal
    entry.update(extra)
    return entry


def log_document_event(
    event: str,
    document_id: str,
    principal: Optional[str] = None,
    title: Optional[str] = None,
    size_bytes: Optional[int] = None,
    error: Optional[str] = None,
) -> LogEntry:
    """Build a document event entry (uploaded / deleted / exported / failed)."""
    data = _base_entry(
        event=event,
        level="ERROR" if error else "INFO",
        principal=principal,
        document_id=document_id,
    )
    if title:
        data["title"] = title
    if size_bytes is not None:
        data["size_bytes"] = size_bytes
    if error:
        data["error"] = error
    return LogEntry("documents", data)


def log_taxonomy_event(
    event: str,
    category_id: str,
    principal: Optional[str] = None,
    office_id: Optional[str] = None,
    name: Optional[str] = None,
) -> LogEntry:
    """Build a category/office change entry."""
    data = _base_entry(event=event, level="INFO", principal=principal, category_id=category_id)
    if office_id:
        data["office_id"] = office_id
    if name:
        data["name"] = name
    return LogEntry("taxonomy", data)


def log_security_event(
    event: str,
    principal: Optional[str],
    role: Optional[str] = None,
    route: Optional[str] = None,
    level: str = "WARNING",
    detail: Optional[str] = None,
) -> LogEntry:
    """Build a security entry (login, logout, denial, role check failure)."""
    data = _base_entry(event=event, level=level, principal=principal)
    if role:
        data["role"] = role
    if route:
        data["route"] = route
    if detail:
        data["detail"] = detail
    return LogEntry("security", data)


def log_backend_call(
    method: str,
    duration_ms: float,
    success: bool,
    principal: Optional[str] = None,
    status_code: Optional[int] = None,
    error: Optional[str] = None,
) -> LogEntry:
    """Build a backend RPC call entry."""
    data = _base_entry(
        event="backend_called",
        level="INFO" if success else "ERROR",
        principal=principal,
        method=method,
        duration_ms=round(duration_ms, 2),
        success=success,
    )
    if status_code is not None:
        data["status_code"] = status_code
    if error:
        data["error"] = error
    return LogEntry("backend", data)


def log_system_event(
    event: str,
    level: str = "INFO",
    details: Optional[Dict[str, Any]] = None,
) -> LogEntry:
    """Build a system event entry (startup, shutdown, config changes)."""
    data = _base_entry(event=event, level=level)
    if details:
        data["details"] = details
    return LogEntry("system", data)


# ---------------------------------------------------------------------------
# Convenience: Global Activity Log Singleton
# ---------------------------------------------------------------------------

_activity_log: Optional[AsyncLogQueue] = None


def init_activity_log(
    log_dir: str = "logs",
    flush_interval_ms: int = 100,
    flush_batch_size: int = 50,
    max_queue_size: int = 10000,
) -> AsyncLogQueue:
    """Initialize and start the global activity log queue."""
    global _activity_log
    if _activity_log is not None:
        _activity_log.stop()
    _activity_log = AsyncLogQueue(
        FileLogger(log_dir=log_dir),
        flush_interval_ms=flush_interval_ms,
        flush_batch_size=flush_batch_size,
        max_queue_size=max_queue_size,
    )
    _activity_log.start()
    return _activity_log


def get_activity_log() -> Optional[AsyncLogQueue]:
    """Get the global activity log queue."""
    return _activity_log


def log(entry: LogEntry) -> bool:
    """Push an entry to the global activity log. Non-blocking; dropped when not initialized."""
    if _activity_log is None:
        return False
    return _activity_log.push(entry)


def shutdown_activity_log() -> None:
    """Flush and stop the global activity log."""
    global _activity_log
    if _activity_log is not None:
        _activity_log.stop()
        _activity_log = None
