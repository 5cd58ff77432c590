import logging
import re
import secrets
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from notepad.storage.backend import ENCODING, NoteBackend
from notepad.storage.errors import (
    ContentTooLarge,
    IdSelectionExhausted,
    InvalidId,
    InvalidInput,
    NoteAlreadyExists,
    NotFound,
    ReservedId,
)

logger = logging.getLogger(__name__)

INITIAL_VERSION = 1
ID_LENGTH = 5
# no 0/o, 1/l/i, 6/b, 8 or other look-alikes
ID_ALPHABET = "234579abcdefghjkmnpqrstwxyz"
ID_MAX_LENGTH = 64
ID_PATTERN = rf"[A-Za-z0-9_-]{{1,{ID_MAX_LENGTH}}}"
MAX_ID_SELECTION_ATTEMPTS = 10
MAX_CONTENT_BYTES = 2_500_000

# path segments the HTTP layer routes elsewhere
RESERVED_IDS = frozenset({"shared", "share", "history", "render", "health"})

_ID_RE = re.compile(rf"^{ID_PATTERN}$")


def is_id_reserved(note_id: str) -> bool:
    # leading underscore is the backend's namespace (_versions, _shared, ...)
    return note_id in RESERVED_IDS or note_id.startswith("_")


def is_id_valid(note_id: str) -> bool:
    return bool(_ID_RE.match(note_id)) and not is_id_reserved(note_id)


def ensure_id_valid(note_id: str) -> None:
    if is_id_reserved(note_id):
        raise ReservedId(f"Reserved note id: {note_id}")
    if not _ID_RE.match(note_id):
        raise InvalidId(f"Note id must match pattern {ID_PATTERN}")


@dataclass(frozen=True)
class Note:
    id: str
    version: int
    modification_time: int
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "version": self.version,
            "modificationTime": self.modification_time,
            "content": self.content,
        }


@dataclass(frozen=True)
class NoteHistoryEntry:
    version: int
    modification_time: int
    size: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "modificationTime": self.modification_time,
            "size": self.size,
        }


class _IdLocks:
    """One re-entrant lock per note id, created on demand."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def get(self, note_id: str) -> threading.RLock:
        with self._guard:
            return self._locks.setdefault(note_id, threading.RLock())

    @contextmanager
    def hold(self, *note_ids: str) -> Iterator[None]:
        # fixed order so two renames in opposite directions can't deadlock
        locks = [self.get(i) for i in sorted(set(note_ids))]
        for lock in locks:
            lock.acquire()
        try:
            yield
        finally:
            for lock in reversed(locks):
                lock.release()


class NotesStore:
    def __init__(self, backend: NoteBackend):
        self.backend = backend
        self._locks = _IdLocks()

    def generate_new_id(self) -> str:
        for attempt in range(1, MAX_ID_SELECTION_ATTEMPTS + 1):
            note_id = "".join(secrets.choice(ID_ALPHABET) for _ in range(ID_LENGTH))
            if is_id_valid(note_id) and not self.has_note(note_id):
                logger.info("Generated new note id %s after %d attempt(s)", note_id, attempt)
                return note_id
        raise IdSelectionExhausted(f"Gave up after {MAX_ID_SELECTION_ATTEMPTS} attempts")

    def has_note(self, note_id: str) -> bool:
        return self.backend.exists(note_id)

    def has_note_version(self, note_id: str, version: int) -> bool:
        if version < INITIAL_VERSION:
            return False
        return self.backend.exists(note_id, version)

    def get_current_version(self, note_id: str) -> int:
        versions = self.backend.list(note_id)
        return versions[-1].version if versions else 0

    def get_note(self, note_id: str, version: Optional[int] = None) -> Note:
        ensure_id_valid(note_id)
        if version is not None and version < INITIAL_VERSION:
            raise InvalidInput(f"Invalid version: {version}")
        logger.info("Fetching note %s at version %s", note_id, version)

        if not self.has_note(note_id):
            raise NotFound(f"Note does not exist: {note_id}")
        with self._locks.hold(note_id):
            try:
                stored = self.backend.get(note_id, version)
            except NotFound:
                raise NotFound(f"Version does not exist: {version}")
            if version is None:
                version = self.get_current_version(note_id)
        return Note(id=note_id, version=version, modification_time=stored.mtime, content=stored.content)

    def update_note(self, note_id: str, content: str) -> Note:
        ensure_id_valid(note_id)
        size = len(content.encode(ENCODING))
        if size > MAX_CONTENT_BYTES:
            raise ContentTooLarge(
                f"Content with {size} bytes exceeded maximum {MAX_CONTENT_BYTES} bytes"
            )

        logger.info("Updating note %s with %d bytes", note_id, size)
        with self._locks.hold(note_id):
            new_version = self.get_current_version(note_id) + 1
            logger.debug("Writing version %d of %s", new_version, note_id)
            stored = self.backend.put(note_id, new_version, content)
        return Note(id=note_id, version=new_version, modification_time=stored.mtime, content=content)

    def delete_note(self, note_id: str) -> None:
        ensure_id_valid(note_id)
        with self._locks.hold(note_id):
            if not self.has_note(note_id):
                return
            logger.info("Deleting note %s", note_id)
            self.backend.delete(note_id)

    def rename_note(self, note_id: str, new_id: str) -> None:
        ensure_id_valid(new_id)
        if note_id == new_id:
            return
        with self._locks.hold(note_id, new_id):
            # renaming a missing note is accepted so callers needn't check first
            if not self.has_note(note_id):
                return
            if self.has_note(new_id):
                raise NoteAlreadyExists(f"Refusing to overwrite {new_id} content")
            logger.info("Renaming note %s to %s", note_id, new_id)
            self.backend.move(note_id, new_id)

    def get_note_history(self, note_id: str) -> list[NoteHistoryEntry]:
        ensure_id_valid(note_id)
        if not self.has_note(note_id):
            raise NotFound(f"Note does not exist: {note_id}")
        return [
            NoteHistoryEntry(version=v.version, modification_time=v.mtime, size=v.size)
            for v in self.backend.list(note_id)
        ]
