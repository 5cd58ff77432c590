import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from notepad.storage.errors import IdSelectionExhausted, InvalidInput, NoteStoreError, NotFound
from notepad.utils.negotiation import JSON, TEXT, preferred_format
from notepad.utils.templates import ERROR_PAGE

logger = logging.getLogger(__name__)


def status_for(exc: NoteStoreError) -> int:
    if isinstance(exc, NotFound):
        return 404
    if isinstance(exc, InvalidInput):
        return 400
    if isinstance(exc, IdSelectionExhausted):
        logger.error("Id selection exhausted: %s", exc)
    return 500


def error_response(request: Request, status_code: int, message: str) -> Response:
    fmt = preferred_format(request)
    if fmt == JSON:
        response: Response = JSONResponse({"detail": message}, status_code=status_code)
    elif fmt == TEXT:
        response = PlainTextResponse(message, status_code=status_code)
    else:
        response = HTMLResponse(ERROR_PAGE.render(status_code=status_code, message=message), status_code=status_code)
    response.headers["Vary"] = "Accept"
    return response


async def note_store_error_handler(request: Request, exc: NoteStoreError) -> Response:
    return error_response(request, status_for(exc), str(exc))


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> Response:
    return error_response(request, exc.status_code, str(exc.detail))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
    errors = exc.errors()
    if errors:
        loc = ".".join(str(p) for p in errors[0].get("loc", ()) if p != "body")
        message = f"Invalid {loc} parameter: {errors[0].get('msg')}"
    else:
        message = "Invalid request"
    return error_response(request, 400, message)


async def unexpected_error_handler(request: Request, exc: Exception) -> Response:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return error_response(request, 500, "Internal Server Error")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(NoteStoreError, note_store_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
