"""Storage backends for note content.

A backend knows how to persist the root content of a note, its numbered
version snapshots and the small JSON records used for share links. It knows
nothing about id rules or version numbering; that lives in ``NotesStore``.
"""
import json
import os
import shutil
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from notepad.storage.errors import NotFound

ENCODING = "utf-8"


@dataclass(frozen=True)
class StoredContent:
    content: str
    mtime: int


@dataclass(frozen=True)
class StoredVersion:
    version: int
    mtime: int
    size: int


def _atomic_write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    # newline="" keeps "\r\n" in note content byte-for-byte
    with tmp_path.open("w", encoding=ENCODING, newline="") as f:
        f.write(text)
        f.flush()
        os.fsync(f.fileno())
    tmp_path.replace(path)


def _atomic_write_json(path: Path, data: dict[str, Any]) -> None:
    _atomic_write_text(path, json.dumps(data, ensure_ascii=False, indent=2))


class NoteBackend(ABC):
    """get/put/list/delete keyed by note id and version."""

    @abstractmethod
    def exists(self, note_id: str, version: Optional[int] = None) -> bool:
        ...

    @abstractmethod
    def get(self, note_id: str, version: Optional[int] = None) -> StoredContent:
        """Return root content when ``version`` is None. Raises NotFound."""

    @abstractmethod
    def put(self, note_id: str, version: int, content: str) -> StoredContent:
        """Store ``content`` as ``version`` and make it the root content."""

    @abstractmethod
    def list(self, note_id: str) -> list[StoredVersion]:
        """Stored versions of a note, ascending."""

    @abstractmethod
    def delete(self, note_id: str) -> None:
        ...

    @abstractmethod
    def move(self, note_id: str, new_note_id: str) -> None:
        ...

    @abstractmethod
    def save_share(self, shared_id: str, record: dict[str, Any]) -> None:
        ...

    @abstractmethod
    def load_share(self, shared_id: str) -> Optional[dict[str, Any]]:
        ...


class FileSystemBackend(NoteBackend):
    """
    Flat-file layout under ``base_dir``:

        {id}                    root content (always the latest version)
        _versions/{id}/{n}      one file per version
        _shared/{shared_id}.json
    """

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    @property
    def versions_dir(self) -> Path:
        return self.base_dir / "_versions"

    @property
    def shared_dir(self) -> Path:
        return self.base_dir / "_shared"

    def _root_path(self, note_id: str) -> Path:
        return self.base_dir / note_id

    def _note_versions_dir(self, note_id: str) -> Path:
        return self.versions_dir / note_id

    def _content_path(self, note_id: str, version: Optional[int] = None) -> Path:
        if version is None:
            return self._root_path(note_id)
        return self._note_versions_dir(note_id) / str(version)

    def exists(self, note_id: str, version: Optional[int] = None) -> bool:
        return self._content_path(note_id, version).is_file()

    def get(self, note_id: str, version: Optional[int] = None) -> StoredContent:
        path = self._content_path(note_id, version)
        try:
            with path.open("r", encoding=ENCODING, newline="") as f:
                content = f.read()
            mtime = int(path.stat().st_mtime)
        except FileNotFoundError:
            raise NotFound(f"No content for {note_id} at version {version}")
        return StoredContent(content=content, mtime=mtime)

    def put(self, note_id: str, version: int, content: str) -> StoredContent:
        version_path = self._content_path(note_id, version)
        _atomic_write_text(version_path, content)

        # root slot is swapped in with a rename so readers never see a partial note
        root_path = self._root_path(note_id)
        tmp_path = root_path.with_name(root_path.name + ".tmp")
        shutil.copyfile(version_path, tmp_path)
        tmp_path.replace(root_path)

        return StoredContent(content=content, mtime=int(root_path.stat().st_mtime))

    def list(self, note_id: str) -> list[StoredVersion]:
        versions_dir = self._note_versions_dir(note_id)
        if not versions_dir.is_dir():
            return []
        out: list[StoredVersion] = []
        for p in versions_dir.iterdir():
            if not p.name.isdigit():
                continue
            st = p.stat()
            out.append(StoredVersion(version=int(p.name), mtime=int(st.st_mtime), size=st.st_size))
        out.sort(key=lambda v: v.version)
        return out

    def delete(self, note_id: str) -> None:
        root_path = self._root_path(note_id)
        if root_path.is_file():
            root_path.unlink()
        versions_dir = self._note_versions_dir(note_id)
        if versions_dir.is_dir():
            shutil.rmtree(versions_dir)

    def move(self, note_id: str, new_note_id: str) -> None:
        versions_dir = self._note_versions_dir(note_id)
        if versions_dir.is_dir():
            versions_dir.replace(self._note_versions_dir(new_note_id))
        self._root_path(note_id).replace(self._root_path(new_note_id))

    def save_share(self, shared_id: str, record: dict[str, Any]) -> None:
        _atomic_write_json(self.shared_dir / f"{shared_id}.json", record)

    def load_share(self, shared_id: str) -> Optional[dict[str, Any]]:
        p = self.shared_dir / f"{shared_id}.json"
        if not p.exists():
            return None
        return json.loads(p.read_text(encoding=ENCODING))


class MemoryBackend(NoteBackend):
    """Process-local backend; nothing survives a restart."""

    def __init__(self):
        self._lock = threading.Lock()
        self._roots: dict[str, StoredContent] = {}
        self._versions: dict[str, dict[int, StoredContent]] = {}
        self._shares: dict[str, dict[str, Any]] = {}

    def exists(self, note_id: str, version: Optional[int] = None) -> bool:
        with self._lock:
            if version is None:
                return note_id in self._roots
            return version in self._versions.get(note_id, {})

    def get(self, note_id: str, version: Optional[int] = None) -> StoredContent:
        with self._lock:
            if version is None:
                stored = self._roots.get(note_id)
            else:
                stored = self._versions.get(note_id, {}).get(version)
        if stored is None:
            raise NotFound(f"No content for {note_id} at version {version}")
        return stored

    def put(self, note_id: str, version: int, content: str) -> StoredContent:
        stored = StoredContent(content=content, mtime=int(time.time()))
        with self._lock:
            self._versions.setdefault(note_id, {})[version] = stored
            self._roots[note_id] = stored
        return stored

    def list(self, note_id: str) -> list[StoredVersion]:
        with self._lock:
            versions = dict(self._versions.get(note_id, {}))
        return [
            StoredVersion(version=v, mtime=s.mtime, size=len(s.content.encode(ENCODING)))
            for v, s in sorted(versions.items())
        ]

    def delete(self, note_id: str) -> None:
        with self._lock:
            self._roots.pop(note_id, None)
            self._versions.pop(note_id, None)

    def move(self, note_id: str, new_note_id: str) -> None:
        with self._lock:
            self._roots[new_note_id] = self._roots.pop(note_id)
            self._versions[new_note_id] = self._versions.pop(note_id, {})

    def save_share(self, shared_id: str, record: dict[str, Any]) -> None:
        with self._lock:
            self._shares[shared_id] = dict(record)

    def load_share(self, shared_id: str) -> Optional[dict[str, Any]]:
        with self._lock:
            record = self._shares.get(shared_id)
        return dict(record) if record is not None else None
