import asyncio
import logging
import re
from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import HTMLResponse, PlainTextResponse
from starlette.concurrency import run_in_threadpool

from notepad.api import deps
from notepad.render.worker import MessageType, RenderRequest
from notepad.storage.event_log import Event
from notepad.storage.notes_store import ensure_id_valid
from notepad.storage.shares_store import is_shared_id
from notepad.utils.templates import SHARE_PAGE

logger = logging.getLogger(__name__)

router = APIRouter(tags=["shares"])

FORMAT_PATTERN = re.compile(r"^(raw|plaintext|plainText|markdown|code(-[^/]+)?)$")
MODES = ("light", "dark")
DEFAULT_FORMAT = "plaintext"
DEFAULT_MODE = "light"


def _parse_format(fmt: str) -> tuple[str, Optional[str]]:
    """Split a share format into (kind, language); ``code-python`` -> ("code", "python")."""
    if not FORMAT_PATTERN.match(fmt):
        raise HTTPException(status_code=404, detail=f"Unknown format: {fmt}")
    if fmt == "markdown":
        return "markdown", None
    if fmt.startswith("code"):
        _, _, language = fmt.partition("-")
        return "code", language or None
    return "plaintext", None


@router.api_route("/share/{note_id}", methods=["GET", "POST"], response_class=PlainTextResponse)
@router.api_route("/share/{note_id}/{version:int}", methods=["GET", "POST"], response_class=PlainTextResponse)
def share_note(note_id: str, version: Optional[int] = None) -> str:
    ensure_id_valid(note_id)
    share = deps.shares.share_note(note_id, version)

    deps.event_log.emit(Event(
        event_type="NOTE_SHARED",
        note_id=note_id,
        meta={"shared_id": share.shared_id, "version": version},
    ))
    return share.shared_id


def _load_content(note_id: str, version: Optional[int]) -> str:
    if is_shared_id(note_id):
        if version is not None:
            raise HTTPException(status_code=404, detail="Shared links are already pinned to a version")
        return deps.shares.get_shared_note_content(note_id)
    ensure_id_valid(note_id)
    return deps.store.get_note(note_id, version).content


@lru_cache(maxsize=None)
def _code_stylesheet(mode: str) -> str:
    from notepad.render.code import stylesheet

    return stylesheet(dark=mode == "dark")


async def _render(kind: str, content: str, language: Optional[str]) -> tuple[str, Optional[str]]:
    if kind == "plaintext":
        return content, None

    if kind == "markdown":
        request = RenderRequest(type=MessageType.RENDER_MARKDOWN, content=content)
    else:
        request = RenderRequest(type=MessageType.RENDER_CODE, content=content, language=language)
    response = await asyncio.wrap_future(deps.render_worker.submit(request))

    if not response.ok:
        logger.warning("Falling back to plaintext share view: %s", response.error)
        return content, None
    if kind == "markdown":
        return response.result, None
    return response.result["value"], response.result["language"]


@router.get("/shared/{note_id}", response_class=HTMLResponse)
@router.get("/shared/{note_id}/{fmt}", response_class=HTMLResponse)
@router.get("/shared/{note_id}/{fmt}/{mode}", response_class=HTMLResponse)
@router.get("/shared/{note_id}/{version:int}/{fmt}/{mode}", response_class=HTMLResponse)
async def show_shared_note(
    note_id: str,
    fmt: str = DEFAULT_FORMAT,
    mode: str = DEFAULT_MODE,
    version: Optional[int] = None,
) -> HTMLResponse:
    kind, language = _parse_format(fmt)
    if mode not in MODES:
        raise HTTPException(status_code=404, detail=f"Unknown mode: {mode}")

    content = await run_in_threadpool(_load_content, note_id, version)
    body, language = await _render(kind, content, language)
    if kind == "code" and language is None:
        # highlighting failed, show it as plain text
        kind = "plaintext"

    stylesheet = await run_in_threadpool(_code_stylesheet, mode) if kind == "code" else None

    return HTMLResponse(SHARE_PAGE.render(
        title=note_id,
        format=kind,
        mode=mode,
        language=language,
        body=body,
        stylesheet=stylesheet,
    ))
