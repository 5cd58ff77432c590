from typing import Literal, Optional

from pydantic import BaseModel, Field

from notepad.storage.notes_store import ID_MAX_LENGTH


class NoteOut(BaseModel):
    id: str
    version: int
    modificationTime: int
    content: str


class NoteView(BaseModel):
    note: NoteOut
    # None until the note has been saved once
    currentVersion: Optional[int] = None


class NoteHistoryEntryOut(BaseModel):
    version: int
    modificationTime: int
    size: int


class NoteUpdateIn(BaseModel):
    text: str


class NoteRenameIn(BaseModel):
    newId: str = Field(min_length=1, max_length=ID_MAX_LENGTH)


class RenderRequestIn(BaseModel):
    type: Literal["RENDER_CODE", "RENDER_MARKDOWN", "LIST_CODE_LANGUAGES"]
    content: str = ""
    language: Optional[str] = Field(default=None, max_length=64)
