import threading
import time
from concurrent.futures import Future

import pytest

from notepad.render.worker import (
    MessageType,
    RenderRequest,
    RenderResponse,
    RenderSession,
    RenderWorker,
    WorkerState,
)

JSON = {"Accept": "application/json"}


def test_render_code_with_language(worker):
    request = RenderRequest(type=MessageType.RENDER_CODE, content="def f(): pass", language="python")
    response = worker.render(request, timeout=10)

    assert response.type == MessageType.RESULT
    assert response.request == request
    assert response.request_type == MessageType.RENDER_CODE
    assert response.result["language"] == "python"
    assert response.result["value"]
    assert "<span" in response.result["value"]


def test_unknown_language_falls_back_to_detection(worker):
    request = RenderRequest(type=MessageType.RENDER_CODE, content="def f(): pass", language="no-such-language")
    response = worker.render(request, timeout=10)

    assert response.ok
    assert response.result["language"]
    assert response.result["value"]


def test_render_code_without_language(worker):
    response = worker.render(RenderRequest(type=MessageType.RENDER_CODE, content="<html></html>"), timeout=10)
    assert response.ok
    assert response.result["value"]


def test_render_markdown(worker):
    content = "\n".join([
        "Visit https://example.com or [top](#top).",
        "",
        "| a | b |",
        "|---|---|",
        "| 1 | 2 |",
    ])
    response = worker.render(RenderRequest(type=MessageType.RENDER_MARKDOWN, content=content), timeout=10)

    assert response.ok
    html = response.result
    assert '<a href="https://example.com" target="_blank" rel="noopener noreferrer">' in html
    assert '<a href="#top">top</a>' in html
    assert '<table class="html-table html-table-bordered small">' in html


def test_markdown_escapes_raw_html(worker):
    response = worker.render(RenderRequest(type=MessageType.RENDER_MARKDOWN, content="<script>x</script>"), timeout=10)
    assert "<script>" not in response.result


def test_list_code_languages(worker):
    response = worker.render(RenderRequest(type=MessageType.LIST_CODE_LANGUAGES), timeout=10)

    assert response.ok
    languages = response.result
    names = [lang["name"] for lang in languages]
    assert names == sorted(names)
    python = next(lang for lang in languages if lang["name"] == "python")
    assert "py" in python["aliases"]


def test_failures_become_error_responses(worker, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(worker, "_get_markdown_renderer", broken)
    request = RenderRequest(type=MessageType.RENDER_MARKDOWN, content="x")
    response = worker.render(request, timeout=10)

    assert response.type == MessageType.ERROR
    assert response.request == request
    assert response.error == "boom"
    assert response.to_dict()["request_type"] == "RENDER_MARKDOWN"

    # the worker keeps serving
    ok = worker.render(RenderRequest(type=MessageType.RENDER_CODE, content="x = 1", language="python"), timeout=10)
    assert ok.ok


def test_unsupported_request_type(worker):
    response = worker.render(RenderRequest(type=MessageType.RESULT), timeout=10)
    assert response.type == MessageType.ERROR
    assert "Unsupported" in response.error


def test_renderers_are_loaded_lazily_and_once(monkeypatch):
    import notepad.render.code

    created = []
    real = notepad.render.code.CodeRenderer

    class SlowCodeRenderer(real):
        def __init__(self):
            time.sleep(0.05)
            created.append(self)
            super().__init__()

    monkeypatch.setattr(notepad.render.code, "CodeRenderer", SlowCodeRenderer)

    worker = RenderWorker()
    assert worker.state == WorkerState.IDLE
    request = RenderRequest(type=MessageType.RENDER_CODE, content="x = 1", language="python")

    results = []
    threads = [threading.Thread(target=lambda: results.append(worker.handle(request))) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(created) == 1
    assert all(r.ok for r in results)
    assert worker.state == WorkerState.RESPONDED


def test_workers_do_not_share_renderers():
    a, b = RenderWorker(), RenderWorker()
    request = RenderRequest(type=MessageType.RENDER_CODE, content="x = 1", language="python")
    a.handle(request)
    b.handle(request)
    assert a._code_renderer is not b._code_renderer


def test_requests_are_processed_in_order(worker):
    futures = [
        worker.submit(RenderRequest(type=MessageType.RENDER_CODE, content=f"x = {i}", language="python"))
        for i in range(5)
    ]
    contents = [f.result(timeout=10).request.content for f in futures]
    assert contents == [f"x = {i}" for i in range(5)]


class ManualWorker:
    """Hands out futures the test resolves itself."""

    def __init__(self):
        self.pending = []

    def submit(self, request):
        future = Future()
        self.pending.append((request, future))
        return future


def test_session_drops_stale_responses():
    worker = ManualWorker()
    delivered = []
    session = RenderSession(worker, delivered.append)

    session.request(RenderRequest(type=MessageType.RENDER_MARKDOWN, content="old"))
    session.request(RenderRequest(type=MessageType.RENDER_MARKDOWN, content="new"))
    (old_req, old_future), (new_req, new_future) = worker.pending
    assert (old_req.seq, new_req.seq) == (1, 2)
    assert session.latest_seq == 2

    new_future.set_result(RenderResponse(type=MessageType.RESULT, request=new_req, result="<p>new</p>"))
    old_future.set_result(RenderResponse(type=MessageType.RESULT, request=old_req, result="<p>old</p>"))

    assert [r.result for r in delivered] == ["<p>new</p>"]


def test_session_with_real_worker(worker):
    delivered = []
    done = threading.Event()

    def on_response(response):
        delivered.append(response)
        done.set()

    session = RenderSession(worker, on_response)
    future = session.request(RenderRequest(type=MessageType.RENDER_MARKDOWN, content="*hi*"))
    future.result(timeout=10)
    assert done.wait(timeout=10)
    assert delivered[0].result == "<p><em>hi</em></p>\n"
    assert delivered[0].request.seq == 1


def test_render_endpoint(client):
    r = client.post("/render", json={"type": "RENDER_CODE", "content": "def f(): pass", "language": "python"})
    assert r.status_code == 200
    body = r.json()
    assert body["type"] == "RESULT"
    assert body["request_type"] == "RENDER_CODE"
    assert body["request"]["content"] == "def f(): pass"
    assert body["result"]["language"] == "python"

    r = client.post("/render", json={"type": "RENDER_MARKDOWN", "content": "**b**"})
    assert r.json()["result"] == "<p><strong>b</strong></p>\n"


@pytest.mark.parametrize("payload", [{"type": "EXPLODE"}, {"content": "x"}])
def test_render_endpoint_rejects_bad_requests(client, payload):
    r = client.post("/render", json=payload, headers=JSON)
    assert r.status_code == 400


def test_app_shutdown_stops_the_worker(client):
    from fastapi.testclient import TestClient

    from notepad.api import deps
    import notepad.main

    with TestClient(notepad.main.app) as c:
        r = c.post("/render", json={"type": "RENDER_MARKDOWN", "content": "x"})
        assert r.status_code == 200
        assert deps.render_worker._executor is not None

    assert deps.render_worker._executor is None
    assert deps.render_worker.state == WorkerState.IDLE
