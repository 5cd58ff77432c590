"""HTTP client for a notepad server, plus a writer that batches rapid edits."""
import logging
import threading
import time
from typing import Any, Callable, Optional
from urllib.parse import urlsplit

import httpx

logger = logging.getLogger(__name__)

API_URL = "http://localhost:8000"

# quiet period before a buffered edit is saved, and the longest an edit may wait
SAVE_DEBOUNCE_SECONDS = 5.0
SAVE_MAX_WAIT_SECONDS = 15.0


class NoteClientError(Exception):
    def __init__(self, status_code: int, detail: str):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class NoteClient:
    def __init__(self, base_url: str = API_URL, client: Optional[httpx.Client] = None, timeout: float = 10.0):
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)
        self._json = {"Accept": "application/json"}

    def _check(self, response: httpx.Response) -> httpx.Response:
        if response.is_success or response.is_redirect:
            return response
        try:
            detail = response.json().get("detail", response.text)
        except ValueError:
            detail = response.text
        raise NoteClientError(response.status_code, str(detail))

    def new_id(self) -> str:
        r = self._check(self._client.get("/", follow_redirects=False, headers=self._json))
        return urlsplit(r.headers["location"]).path.strip("/")

    def get(self, note_id: str, version: Optional[int] = None) -> dict[str, Any]:
        path = f"/{note_id}" if version is None else f"/{note_id}/{version}"
        return self._check(self._client.get(path, headers=self._json)).json()

    def update(self, note_id: str, text: str) -> dict[str, Any]:
        r = self._client.post(f"/{note_id}", json={"text": text}, headers=self._json)
        return self._check(r).json()

    def delete(self, note_id: str) -> None:
        self._check(self._client.delete(f"/{note_id}", headers=self._json))

    def rename(self, note_id: str, new_id: str) -> None:
        self._check(self._client.post(f"/{note_id}/rename", json={"newId": new_id}, headers=self._json))

    def history(self, note_id: str) -> list[dict[str, Any]]:
        return self._check(self._client.get(f"/{note_id}/history", headers=self._json)).json()

    def share(self, note_id: str, version: Optional[int] = None) -> str:
        path = f"/share/{note_id}" if version is None else f"/share/{note_id}/{version}"
        return self._check(self._client.post(path, headers=self._json)).text

    def render(self, request_type: str, content: str = "", language: Optional[str] = None) -> dict[str, Any]:
        body = {"type": request_type, "content": content, "language": language}
        return self._check(self._client.post("/render", json=body, headers=self._json)).json()

    def close(self) -> None:
        self._client.close()


class DebouncedWriter:
    """
    Buffers edits to one note and saves only the latest text.

    A save fires once edits stop for ``wait`` seconds, but never later than
    ``max_wait`` seconds after the first unsaved edit, so continuous typing
    still gets persisted.
    """

    def __init__(
        self,
        client: NoteClient,
        note_id: str,
        wait: float = SAVE_DEBOUNCE_SECONDS,
        max_wait: float = SAVE_MAX_WAIT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        timer_factory: Callable[[float, Callable[[], None]], Any] = threading.Timer,
    ):
        if max_wait < wait:
            raise ValueError("max_wait must be >= wait")
        self.client = client
        self.note_id = note_id
        self.wait = wait
        self.max_wait = max_wait
        self._clock = clock
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._send_lock = threading.Lock()
        self._pending: Optional[str] = None
        self._first_edit_at: Optional[float] = None
        self._timer = None
        self.last_saved: Optional[dict[str, Any]] = None

    def delay(self, now: float) -> float:
        if self._first_edit_at is None:
            return self.wait
        remaining = self.max_wait - (now - self._first_edit_at)
        return max(0.0, min(self.wait, remaining))

    def write(self, text: str) -> None:
        with self._lock:
            now = self._clock()
            if self._pending is None:
                self._first_edit_at = now
            self._pending = text
            if self._timer is not None:
                self._timer.cancel()
            self._timer = self._timer_factory(self.delay(now), self.flush)
            self._timer.start()

    def flush(self) -> Optional[dict[str, Any]]:
        # one save in flight at a time, so saves reach the server in edit order
        with self._send_lock:
            with self._lock:
                if self._timer is not None:
                    self._timer.cancel()
                    self._timer = None
                text, self._pending = self._pending, None
                self._first_edit_at = None
            if text is None:
                return None
            logger.debug("Saving %d chars to %s", len(text), self.note_id)
            self.last_saved = self.client.update(self.note_id, text)
            return self.last_saved

    def close(self) -> None:
        self.flush()
