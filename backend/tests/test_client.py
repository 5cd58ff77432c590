import threading

import pytest

from notepad.client import DebouncedWriter, NoteClient, NoteClientError


@pytest.fixture()
def notes(client):
    return NoteClient(client=client)


def test_client_round_trip(notes):
    note_id = notes.new_id()
    assert len(note_id) == 5

    assert notes.get(note_id)["currentVersion"] is None
    assert notes.update(note_id, "hello")["version"] == 1
    assert notes.update(note_id, "hello world")["version"] == 2
    assert notes.get(note_id, 1)["note"]["content"] == "hello"
    assert [h["version"] for h in notes.history(note_id)] == [1, 2]

    shared_id = notes.share(note_id, 1)
    assert shared_id.startswith("@")

    notes.rename(note_id, "renamed")
    assert notes.get("renamed")["note"]["content"] == "hello world"

    notes.delete("renamed")
    with pytest.raises(NoteClientError) as excinfo:
        notes.history("renamed")
    assert excinfo.value.status_code == 404
    assert "renamed" in excinfo.value.detail


def test_client_render(notes):
    body = notes.render("RENDER_CODE", "def f(): pass", "python")
    assert body["result"]["language"] == "python"


def test_client_surfaces_bad_input(notes):
    with pytest.raises(NoteClientError) as excinfo:
        notes.update("shared", "x")
    assert excinfo.value.status_code == 400


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class FakeTimer:
    created = []

    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.started = False
        FakeTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.callback()


class RecordingClient:
    def __init__(self):
        self.saves = []

    def update(self, note_id, text):
        self.saves.append((note_id, text))
        return {"id": note_id, "version": len(self.saves), "content": text}


@pytest.fixture()
def writer_parts():
    FakeTimer.created = []
    clock = FakeClock()
    recorder = RecordingClient()
    writer = DebouncedWriter(recorder, "abcde", wait=5, max_wait=15, clock=clock, timer_factory=FakeTimer)
    return writer, clock, recorder


def test_writer_saves_latest_text_after_quiet_period(writer_parts):
    writer, clock, recorder = writer_parts

    writer.write("h")
    clock.now = 1
    writer.write("he")
    clock.now = 2
    writer.write("hel")

    assert recorder.saves == []
    assert [t.delay for t in FakeTimer.created] == [5, 5, 5]
    assert all(t.cancelled for t in FakeTimer.created[:-1])

    FakeTimer.created[-1].fire()
    assert recorder.saves == [("abcde", "hel")]
    assert writer.last_saved["version"] == 1


def test_writer_never_waits_past_max_wait(writer_parts):
    writer, clock, _ = writer_parts

    writer.write("a")
    clock.now = 12
    writer.write("ab")
    clock.now = 16
    writer.write("abc")

    assert [t.delay for t in FakeTimer.created] == [5, 3, 0]


def test_writer_window_restarts_after_save(writer_parts):
    writer, clock, recorder = writer_parts

    writer.write("a")
    clock.now = 14
    writer.flush()
    writer.write("ab")

    assert FakeTimer.created[-1].delay == 5
    assert recorder.saves == [("abcde", "a")]


def test_writer_flush_and_close(writer_parts):
    writer, _, recorder = writer_parts

    assert writer.flush() is None
    writer.write("x")
    writer.close()
    assert recorder.saves == [("abcde", "x")]
    # nothing pending any more
    writer.close()
    assert len(recorder.saves) == 1


def test_writer_rejects_inverted_windows():
    with pytest.raises(ValueError):
        DebouncedWriter(RecordingClient(), "abcde", wait=10, max_wait=5)


class BlockingClient:
    """Holds the first save until released."""

    def __init__(self):
        self.applied = []
        self.sending = threading.Event()
        self.release = threading.Event()

    def update(self, note_id, text):
        if not self.applied and not self.sending.is_set():
            self.sending.set()
            assert self.release.wait(timeout=10)
        self.applied.append(text)
        return {"id": note_id, "version": len(self.applied), "content": text}


def test_writer_saves_arrive_in_edit_order():
    FakeTimer.created = []
    remote = BlockingClient()
    writer = DebouncedWriter(remote, "abcde", wait=5, max_wait=15, clock=FakeClock(), timer_factory=FakeTimer)

    writer.write("old")
    timer_save = threading.Thread(target=FakeTimer.created[-1].fire)
    timer_save.start()
    assert remote.sending.wait(timeout=10)

    writer.write("new")
    closing = threading.Thread(target=writer.close)
    closing.start()
    closing.join(timeout=0.2)
    # the second save waits for the first to finish
    assert closing.is_alive()

    remote.release.set()
    timer_save.join(timeout=10)
    closing.join(timeout=10)

    assert remote.applied == ["old", "new"]
    assert writer.last_saved["content"] == "new"
