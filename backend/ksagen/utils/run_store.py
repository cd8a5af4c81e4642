import json
import os
import threading
import time
from typing import Any, Callable, Dict, List, Literal, Optional

from pydantic import BaseModel

RunStatus = Literal["queued", "running", "completed", "failed"]
FINISHED_STATUSES = ("completed", "failed")


def evict_oldest(
    records: Dict[str, Any],
    max_records: int,
    status_of: Callable[[Any], str],
    keep: Optional[str] = None,
) -> List[str]:
    """Drop the oldest finished records, then the oldest of any status, until the cap holds."""
    excess = len(records) - max_records
    if excess <= 0:
        return []
    candidates = [(key, status_of(value)) for key, value in records.items() if key != keep]
    finished = [key for key, status in candidates if status in FINISHED_STATUSES]
    others = [key for key, status in candidates if status not in FINISHED_STATUSES]
    evicted = (finished + others)[:excess]
    for key in evicted:
        del records[key]
    return evicted


class RunRecord(BaseModel):
    status: RunStatus
    kind: Optional[str] = None
    output: Optional[Any] = None
    error: Optional[str] = None
    startedAt: Optional[float] = None
    finishedAt: Optional[float] = None


class RunStore:
    """
    Run records keyed by run id, held in memory and mirrored to an optional
    JSON file so a separate worker process can read them.

    Records are ordered by last update. Past `max_records` the oldest
    finished runs are evicted first, from memory and file alike.
    """

    def __init__(self, path: Optional[str] = None, max_records: int = 500):
        if max_records < 1:
            raise ValueError("max_records must be positive")
        self.path = path
        self.max_records = max_records
        self._lock = threading.Lock()
        self._records: Dict[str, RunRecord] = {}

        if self.path:
            directory = os.path.dirname(self.path)
            if directory and not os.path.exists(directory):
                os.makedirs(directory, exist_ok=True)

    def _read_file(self) -> Dict[str, Any]:
        if not self.path or not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f) or {}
        except (OSError, json.JSONDecodeError) as e:
            print(f"[Warning: run store file {self.path} unreadable: {e}]")
            return {}

    def _write_file(self, records: Dict[str, Any]) -> None:
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(records, f, default=str)
        except OSError as e:
            print(f"[Warning: failed to persist run store to {self.path}: {e}]")

    def set(self, run_id: str, record: RunRecord) -> None:
        with self._lock:
            self._records.pop(run_id, None)
            self._records[run_id] = record
            evict_oldest(self._records, self.max_records, lambda r: r.status, keep=run_id)
            if self.path:
                records = self._read_file()
                records.pop(run_id, None)
                records[run_id] = record.model_dump(mode="json")
                evict_oldest(records, self.max_records, lambda r: r.get("status"), keep=run_id)
                self._write_file(records)

    def get(self, run_id: str) -> Optional[RunRecord]:
        with self._lock:
            if self.path:
                stored = self._read_file().get(run_id)
                if stored is not None:
                    return RunRecord.model_validate(stored)
            return self._records.get(run_id)

    def start(self, run_id: str, kind: str) -> RunRecord:
        record = RunRecord(status="running", kind=kind, startedAt=time.time())
        self.set(run_id, record)
        return record

    def complete(self, run_id: str, output: Any) -> RunRecord:
        current = self.get(run_id) or RunRecord(status="running")
        record = current.model_copy(update={"status": "completed", "output": output, "finishedAt": time.time()})
        self.set(run_id, record)
        return record

    def fail(self, run_id: str, error: str) -> RunRecord:
        current = self.get(run_id) or RunRecord(status="running")
        record = current.model_copy(update={"status": "failed", "error": error, "finishedAt": time.time()})
        self.set(run_id, record)
        return record
