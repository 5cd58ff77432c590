import json
import time
from typing import Optional, Type, TypeVar

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse, Response
from pydantic import BaseModel, ValidationError
from starlette.concurrency import run_in_threadpool

from notepad.api import deps
from notepad.models.notes import NoteHistoryEntryOut, NoteOut, NoteRenameIn, NoteUpdateIn, NoteView
from notepad.storage.errors import InvalidInput, NotFound
from notepad.storage.event_log import Event
from notepad.storage.notes_store import INITIAL_VERSION, Note, ensure_id_valid
from notepad.utils.negotiation import JSON, TEXT, preferred_format
from notepad.utils.templates import NOTE_PAGE

router = APIRouter(tags=["notes"])

PayloadT = TypeVar("PayloadT", bound=BaseModel)


async def _read_payload(request: Request, model: Type[PayloadT]) -> PayloadT:
    """Accept either a JSON body or a urlencoded/multipart form."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            data = json.loads(await request.body())
        except ValueError:
            raise InvalidInput("Invalid JSON")
    else:
        data = dict(await request.form())

    if not isinstance(data, dict):
        raise InvalidInput("Invalid JSON")
    for name in model.model_fields:
        if name not in data:
            raise InvalidInput(f"Missing {name} parameter")
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        field = exc.errors()[0]["loc"][0]
        raise InvalidInput(f"Invalid {field} parameter")


def _ensure_note_version_exists(note_id: str, version: Optional[int] = None) -> None:
    if not deps.store.has_note(note_id):
        raise NotFound(f"Note does not exist: {note_id}")
    if version is not None and not deps.store.has_note_version(note_id, version):
        raise NotFound(f"Version does not exist: {version}")


@router.get("/")
def new_note() -> RedirectResponse:
    note_id = deps.store.generate_new_id()
    return RedirectResponse(url=f"/{note_id}", status_code=302)


@router.get("/{note_id}/history", response_model=list[NoteHistoryEntryOut])
def list_note_history(note_id: str) -> list[NoteHistoryEntryOut]:
    history = deps.store.get_note_history(note_id)
    return [NoteHistoryEntryOut(**entry.to_dict()) for entry in history]


@router.get("/{note_id}")
@router.get("/{note_id}/{version:int}")
def show_note(request: Request, note_id: str, version: Optional[int] = None) -> Response:
    ensure_id_valid(note_id)
    if version is not None:
        _ensure_note_version_exists(note_id, version)

    if deps.store.has_note(note_id):
        note = deps.store.get_note(note_id, version)
        current_version: Optional[int] = deps.store.get_current_version(note_id)
    else:
        # nothing is written until the first edit, so fresh ids don't leave empty files
        note = Note(id=note_id, version=INITIAL_VERSION, modification_time=int(time.time()), content="")
        current_version = None

    view = NoteView(note=NoteOut(**note.to_dict()), currentVersion=current_version)

    fmt = preferred_format(request)
    if fmt == JSON:
        response: Response = JSONResponse(view.model_dump())
    elif fmt == TEXT:
        response = PlainTextResponse(note.content)
    else:
        response = HTMLResponse(NOTE_PAGE.render(title=note_id, note=view.note, current_version=current_version))
    response.headers["Vary"] = "Accept"
    return response


def _update_and_log(note_id: str, text: str) -> Note:
    note = deps.store.update_note(note_id, text)
    deps.event_log.emit(Event(
        event_type="NOTE_UPDATED",
        note_id=note_id,
        meta={"version": note.version, "size": len(text.encode("utf-8"))},
    ))
    return note


@router.post("/{note_id}", response_model=NoteOut)
async def update_note(request: Request, note_id: str) -> NoteOut:
    ensure_id_valid(note_id)
    payload = await _read_payload(request, NoteUpdateIn)

    # store and event log touch the disk, keep them off the event loop
    note = await run_in_threadpool(_update_and_log, note_id, payload.text)
    return NoteOut(**note.to_dict())


@router.delete("/{note_id}", status_code=204)
def delete_note(note_id: str) -> None:
    ensure_id_valid(note_id)
    if not deps.store.has_note(note_id):
        return None

    deps.store.delete_note(note_id)
    deps.event_log.emit(Event(event_type="NOTE_DELETED", note_id=note_id))
    return None


def _rename_and_log(note_id: str, new_id: str) -> None:
    existed = deps.store.has_note(note_id)
    deps.store.rename_note(note_id, new_id)
    if existed and note_id != new_id:
        deps.event_log.emit(Event(
            event_type="NOTE_RENAMED",
            note_id=new_id,
            meta={"old_id": note_id},
        ))


@router.post("/{note_id}/rename", status_code=204)
async def rename_note(request: Request, note_id: str) -> None:
    ensure_id_valid(note_id)
    payload = await _read_payload(request, NoteRenameIn)

    await run_in_threadpool(_rename_and_log, note_id, payload.newId)
    return None
