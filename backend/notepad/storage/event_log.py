import json
import logging
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _events_path(base_dir: Path) -> Path:
    return base_dir / "_events" / "events.log"


@dataclass(frozen=True)
class Event:
    event_type: str
    note_id: str
    meta: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": str(uuid.uuid4()),
            "event_type": self.event_type,
            "ts": _utc_now_iso(),
            "note_id": self.note_id,
            "meta": self.meta or {},
        }


class EventLog:
    """
    Append-only JSON-lines record of note mutations.

    With ``base_dir=None`` (in-memory storage) events only go to the logger.
    """

    def __init__(self, base_dir: Optional[Path]):
        self.base_dir = base_dir

    @property
    def path(self) -> Optional[Path]:
        return _events_path(self.base_dir) if self.base_dir is not None else None

    def emit(self, event: Event) -> None:
        record = event.to_dict()
        logger.debug("%s %s %s", record["event_type"], record["note_id"], record["meta"])
        if self.path is None:
            return

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False) + "\n")
            f.flush()
            os.fsync(f.fileno())

    def read(self) -> list[dict[str, Any]]:
        if self.path is None or not self.path.exists():
            return []
        out = []
        for line in self.path.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            try:
                out.append(json.loads(line))
            except json.JSONDecodeError:
                logger.warning("Skipping corrupt event log line")
        return out
