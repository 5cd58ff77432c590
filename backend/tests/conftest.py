import importlib

import pytest
from fastapi.testclient import TestClient

from notepad.render.worker import RenderWorker
from notepad.storage.backend import FileSystemBackend, MemoryBackend
from notepad.storage.notes_store import NotesStore


def _make_client(monkeypatch, data_dir, storage):
    monkeypatch.setenv("APP_DATA_DIR", str(data_dir))
    monkeypatch.setenv("NOTEPAD_STORAGE", storage)

    # reload so deps.py builds its store from the new env vars
    import notepad.api.deps
    import notepad.main
    importlib.reload(notepad.api.deps)
    importlib.reload(notepad.main)

    return TestClient(notepad.main.app)


@pytest.fixture()
def client(tmp_path, monkeypatch):
    # isolate data dir per test; leaving the block shuts the render worker down
    with _make_client(monkeypatch, tmp_path, "fs") as c:
        yield c


@pytest.fixture()
def memory_client(tmp_path, monkeypatch):
    with _make_client(monkeypatch, tmp_path, "memory") as c:
        yield c


@pytest.fixture(params=["fs", "memory"])
def store(request, tmp_path):
    backend = FileSystemBackend(tmp_path) if request.param == "fs" else MemoryBackend()
    return NotesStore(backend)


@pytest.fixture()
def worker():
    w = RenderWorker(name="test-render")
    yield w
    w.shutdown()
