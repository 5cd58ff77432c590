import logging
import os
from pathlib import Path

from notepad.render.worker import RenderWorker
from notepad.storage.backend import FileSystemBackend, MemoryBackend, NoteBackend
from notepad.storage.event_log import EventLog
from notepad.storage.notes_store import NotesStore
from notepad.storage.shares_store import SharesStore

logger = logging.getLogger(__name__)

# repository_root/data (we are in backend/notepad/api)
DEFAULT_DATA_DIR = Path(__file__).resolve().parents[3] / "data"
DATA_DIR = Path(os.getenv("APP_DATA_DIR", str(DEFAULT_DATA_DIR)))

# "fs" (default) or "memory"
STORAGE = os.getenv("NOTEPAD_STORAGE", "fs").lower()


def _make_backend() -> NoteBackend:
    if STORAGE == "memory":
        return MemoryBackend()
    if STORAGE != "fs":
        raise RuntimeError(f"Unknown NOTEPAD_STORAGE: {STORAGE}")
    return FileSystemBackend(DATA_DIR)


backend = _make_backend()
store = NotesStore(backend)
shares = SharesStore(store)
event_log = EventLog(DATA_DIR if STORAGE == "fs" else None)
render_worker = RenderWorker()

logger.info("Using %s storage at %s", STORAGE, DATA_DIR)
