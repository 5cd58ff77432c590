import asyncio

from fastapi import APIRouter

from notepad.api import deps
from notepad.models.notes import RenderRequestIn
from notepad.render.worker import MessageType, RenderRequest

router = APIRouter(prefix="/render", tags=["render"])


@router.post("")
async def render(payload: RenderRequestIn) -> dict:
    """Render through the background worker; failures come back as an ERROR message, not an HTTP error."""
    request = RenderRequest(
        type=MessageType(payload.type),
        content=payload.content,
        language=payload.language,
    )
    response = await asyncio.wrap_future(deps.render_worker.submit(request))
    return response.to_dict()
