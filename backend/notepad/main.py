import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from notepad.api import deps, notes, render, shares
from notepad.api.errors import register_error_handlers

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    deps.render_worker.shutdown()


app = FastAPI(title="Notepad", lifespan=lifespan)
register_error_handlers(app)


@app.get("/health")
def health():
    return {"ok": True}


# notes last: its /{note_id} routes would swallow the fixed paths
app.include_router(render.router)
app.include_router(shares.router)
app.include_router(notes.router)
