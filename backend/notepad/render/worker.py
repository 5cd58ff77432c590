"""
Background rendering of note content.

Rendering markdown or highlighting a large note can take a while, so it runs
on a dedicated thread instead of the request handler. Requests are processed
one at a time in arrival order. Every request gets exactly one response: a
``RESULT`` carrying the rendered value or an ``ERROR`` carrying the message;
a failing request never takes the worker down.

The render libraries are imported on first use and kept on the worker
instance, so two workers never share renderer state.
"""
import itertools
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class MessageType(str, Enum):
    RESULT = "RESULT"
    ERROR = "ERROR"
    RENDER_CODE = "RENDER_CODE"
    RENDER_MARKDOWN = "RENDER_MARKDOWN"
    LIST_CODE_LANGUAGES = "LIST_CODE_LANGUAGES"


class WorkerState(str, Enum):
    IDLE = "IDLE"
    LOADING = "LOADING"
    READY = "READY"
    RENDERING = "RENDERING"
    RESPONDED = "RESPONDED"


@dataclass(frozen=True)
class RenderRequest:
    type: MessageType
    content: str = ""
    language: Optional[str] = None
    seq: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type.value}
        if self.type != MessageType.LIST_CODE_LANGUAGES:
            out["content"] = self.content
        if self.type == MessageType.RENDER_CODE:
            out["language"] = self.language
        if self.seq is not None:
            out["seq"] = self.seq
        return out


@dataclass(frozen=True)
class RenderResponse:
    type: MessageType
    request: RenderRequest
    result: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.type == MessageType.RESULT

    @property
    def request_type(self) -> MessageType:
        return self.request.type

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "type": self.type.value,
            "request": self.request.to_dict(),
            "request_type": self.request_type.value,
        }
        if self.ok:
            out["result"] = self.result
        else:
            out["error"] = self.error
        return out


class RenderWorker:
    def __init__(self, name: str = "render-worker"):
        self.name = name
        self.state = WorkerState.IDLE
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()
        # held for the whole import+setup so a second caller waits instead of loading again
        self._load_lock = threading.Lock()
        self._code_renderer = None
        self._markdown_renderer = None

    def _get_code_renderer(self):
        with self._load_lock:
            if self._code_renderer is None:
                self.state = WorkerState.LOADING
                logger.info("%s: loading code highlighter", self.name)
                from notepad.render.code import CodeRenderer

                self._code_renderer = CodeRenderer()
            self.state = WorkerState.READY
            return self._code_renderer

    def _get_markdown_renderer(self):
        with self._load_lock:
            if self._markdown_renderer is None:
                self.state = WorkerState.LOADING
                logger.info("%s: loading markdown engine", self.name)
                from notepad.render.markdown import MarkdownRenderer

                self._markdown_renderer = MarkdownRenderer()
            self.state = WorkerState.READY
            return self._markdown_renderer

    def handle(self, request: RenderRequest) -> RenderResponse:
        """Process one request on the calling thread."""
        try:
            if request.type == MessageType.RENDER_CODE:
                renderer = self._get_code_renderer()
                self.state = WorkerState.RENDERING
                result = renderer.render(request.content, request.language)
            elif request.type == MessageType.RENDER_MARKDOWN:
                renderer = self._get_markdown_renderer()
                self.state = WorkerState.RENDERING
                result = renderer.render(request.content)
            elif request.type == MessageType.LIST_CODE_LANGUAGES:
                renderer = self._get_code_renderer()
                self.state = WorkerState.RENDERING
                result = renderer.list_languages()
            else:
                raise ValueError(f"Unsupported request type: {request.type}")
        except Exception as exc:
            logger.exception("%s: %s request failed", self.name, request.type)
            self.state = WorkerState.RESPONDED
            return RenderResponse(type=MessageType.ERROR, request=request, error=str(exc))

        self.state = WorkerState.RESPONDED
        return RenderResponse(type=MessageType.RESULT, request=request, result=result)

    def submit(self, request: RenderRequest) -> "Future[RenderResponse]":
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=self.name)
            return self._executor.submit(self.handle, request)

    def render(self, request: RenderRequest, timeout: Optional[float] = None) -> RenderResponse:
        return self.submit(request).result(timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        with self._executor_lock:
            if self._executor is not None:
                self._executor.shutdown(wait=wait)
                self._executor = None
        self.state = WorkerState.IDLE


class RenderSession:
    """
    Sends requests to a worker and only delivers the newest response.

    Each request is stamped with an increasing sequence number; a response
    whose number is no longer the latest issued is dropped, so a slow render
    of old content can't overwrite a newer one.
    """

    def __init__(self, worker: RenderWorker, on_response: Callable[[RenderResponse], None]):
        self.worker = worker
        self.on_response = on_response
        self._counter = itertools.count(1)
        self._lock = threading.Lock()
        self._latest = 0

    @property
    def latest_seq(self) -> int:
        return self._latest

    def request(self, request: RenderRequest) -> "Future[RenderResponse]":
        with self._lock:
            seq = next(self._counter)
            self._latest = seq
        future = self.worker.submit(replace(request, seq=seq))
        future.add_done_callback(self._deliver)
        return future

    def _deliver(self, future: "Future[RenderResponse]") -> None:
        response = future.result()
        with self._lock:
            stale = response.request.seq != self._latest
        if stale:
            logger.debug("Dropping stale render response #%s", response.request.seq)
            return
        self.on_response(response)
