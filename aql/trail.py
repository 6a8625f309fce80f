"""Hash-chained record of maintenance actions, one JSONL file per run."""
from __future__ import annotations

import time
from hashlib import sha256
from pathlib import Path
from typing import Any, Dict, Optional

from . import codec
from . import storage
from .schemas import TrailEvent
from .settings import settings


TRAIL_FILE = "trail.jsonl"


def chain_next(prev_hash: str, payload: Dict[str, Any]) -> str:
    """sha256 over the previous hash followed by the sorted-key JSON payload."""
    if prev_hash is None:
        prev_hash = ""
    if not isinstance(prev_hash, str):
        raise TypeError("prev_hash must be a string")
    h = sha256()
    h.update(prev_hash.encode("utf-8"))
    h.update(codec.dumps(payload).encode("utf-8"))
    return h.hexdigest()


class MaintenanceTrail:
    def __init__(self) -> None:
        self._last_hash_by_run: Dict[str, str] = {}

    def _resolve_prev_hash(self, run_id: str) -> str:
        if run_id in self._last_hash_by_run:
            return self._last_hash_by_run[run_id]
        last = storage.get_last_trail_hash(run_id)
        return last or ""

    def trail_path(self, run_id: str) -> Path:
        return settings.artifacts_dir_for(run_id) / TRAIL_FILE

    def log_event(
        self,
        run_id: str,
        step: str,
        status: str = "ok",
        details: Optional[Dict[str, Any]] = None,
    ) -> TrailEvent:
        event_dict = {
            "run_id": run_id,
            "step": step,
            "status": status,
            "ts_iso": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "ts_ns": time.perf_counter_ns(),
            "details": details or {},
            "prev_event_hash": self._resolve_prev_hash(run_id),
        }
        event_hash = chain_next(event_dict["prev_event_hash"], event_dict)
        event = TrailEvent(**{**event_dict, "event_hash": event_hash})

        with open(self.trail_path(run_id), "a", encoding="utf-8") as f:
            f.write(codec.dumps(event.model_dump()) + "\n")

        if settings.artifacts.get("keep_trail_copy_in_db", True):
            storage.append_trail(event)

        self._last_hash_by_run[run_id] = event_hash
        return event


def verify_chain(trail_path: Path) -> Dict[str, Any]:
    events = 0
    run_id = None
    prev = ""
    break_index = -1
    for idx, line in enumerate(trail_path.read_text(encoding="utf-8").splitlines()):
        if not line.strip():
            continue
        ev = codec.loads(line)
        if ev.get("prev_event_hash", "") != prev:
            break_index = idx
            break
        payload = {k: v for k, v in ev.items() if k != "event_hash"}
        if chain_next(prev, payload) != ev.get("event_hash"):
            break_index = idx
            break
        prev = ev["event_hash"]
        run_id = run_id or ev.get("run_id")
        events += 1
    return {
        "run_id": run_id,
        "events": events,
        "valid": break_index == -1,
        "break_index": None if break_index == -1 else break_index,
    }
