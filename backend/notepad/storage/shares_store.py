import logging
import re
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from notepad.storage.errors import IdSelectionExhausted, NotFound
from notepad.storage.notes_store import MAX_ID_SELECTION_ATTEMPTS, NotesStore

logger = logging.getLogger(__name__)

SHARED_ID_PREFIX = "@"
SHARED_ID_LENGTH = 6
SHARED_ID_ALPHABET = string.digits + string.ascii_letters
SHARED_ID_PATTERN = r"@[A-Za-z0-9]{6}"

_SHARED_ID_RE = re.compile(rf"^{SHARED_ID_PATTERN}$")


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def is_shared_id(value: str) -> bool:
    return bool(_SHARED_ID_RE.match(value))


@dataclass(frozen=True)
class Share:
    shared_id: str
    note_id: str
    version: Optional[int]  # None follows the note's current content
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "shared_id": self.shared_id,
            "note_id": self.note_id,
            "version": self.version,
            "created_at": self.created_at,
        }


class SharesStore:
    def __init__(self, notes: NotesStore):
        self.notes = notes

    @property
    def backend(self):
        return self.notes.backend

    def _generate_shared_id(self) -> str:
        for _ in range(MAX_ID_SELECTION_ATTEMPTS):
            suffix = "".join(secrets.choice(SHARED_ID_ALPHABET) for _ in range(SHARED_ID_LENGTH))
            shared_id = SHARED_ID_PREFIX + suffix
            if not self.has_shared_note(shared_id):
                return shared_id
        raise IdSelectionExhausted(f"Gave up after {MAX_ID_SELECTION_ATTEMPTS} attempts")

    def share_note(self, note_id: str, version: Optional[int] = None) -> Share:
        if not self.notes.has_note(note_id):
            raise NotFound(f"Note does not exist: {note_id}")
        if version is not None and not self.notes.has_note_version(note_id, version):
            raise NotFound(f"Version does not exist: {version}")

        logger.info("Sharing note %s at version %s", note_id, version)
        share = Share(
            shared_id=self._generate_shared_id(),
            note_id=note_id,
            version=version,
            created_at=_utc_now_iso(),
        )
        self.backend.save_share(share.shared_id, share.to_dict())
        logger.info("Generated shared id %s for note %s", share.shared_id, note_id)
        return share

    def get_share(self, shared_id: str) -> Optional[Share]:
        if not is_shared_id(shared_id):
            return None
        raw = self.backend.load_share(shared_id)
        if raw is None:
            return None
        return Share(
            shared_id=raw["shared_id"],
            note_id=raw["note_id"],
            version=raw.get("version"),
            created_at=raw["created_at"],
        )

    def has_shared_note(self, shared_id: str) -> bool:
        return self.get_share(shared_id) is not None

    def get_shared_note_content(self, shared_id: str) -> str:
        logger.info("Fetching shared note %s", shared_id)
        share = self.get_share(shared_id)
        if share is None:
            raise NotFound(f"Shared note does not exist: {shared_id}")
        # a deleted or renamed note leaves the share dangling; get_note raises NotFound
        return self.notes.get_note(share.note_id, share.version).content
