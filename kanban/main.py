from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .auth import get_current_user
from .config import Settings, get_settings
from .errors import KanbanError, PreconditionFailed, ValidationError
from .models import Board, Task
from .repository import BoardRepository
from .schemas import (
    BoardDeleted,
    BoardIn,
    BoardOut,
    BoardUpdate,
    ErrorEnvelope,
    Health,
    Message,
    SubtaskPatch,
    TaskIn,
    TaskOut,
    TaskPatch,
    Version,
)
from .storage import open_store
from .utils import etag_for, new_uuid, parse_etag


logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# === Helpers ===


def board_out(board: Board) -> BoardOut:
    return BoardOut.model_validate(board.to_document())


def task_out(task: Task) -> TaskOut:
    return TaskOut.model_validate(task.to_document())


def get_repository(request: Request) -> BoardRepository:
    return request.app.state.repository


def get_if_match(if_match: Optional[str] = Header(default=None, alias="If-Match")) -> Optional[int]:
    try:
        return parse_etag(if_match)
    except ValueError:
        raise PreconditionFailed("If-Match must carry a board version") from None


def error_response(request: Request, exc: KanbanError) -> JSONResponse:
    return envelope_response(request, exc.status_code, exc.code, exc.message, exc.details, exc.headers)


def envelope_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: Optional[Any] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    envelope = ErrorEnvelope(
        code=code,
        message=message,
        details=details,
        requestId=request.headers.get("X-Request-ID") or new_uuid(),
    )
    return JSONResponse(status_code=status_code, content=jsonable_encoder(envelope), headers=headers)


async def handle_kanban_error(request: Request, exc: KanbanError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return error_response(request, exc)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(request, ValidationError(details={"errors": exc.errors()}))


async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Routing and body-parsing failures raised by Starlette itself.
    code = HTTPStatus(exc.status_code).phrase.lower().replace(" ", "_").replace("-", "_")
    return envelope_response(request, exc.status_code, code, str(exc.detail), headers=exc.headers)


# === Health & metadata ===

router = APIRouter(prefix="/api")


@router.get("/health", response_model=Health)
def health() -> Health:
    return Health()


@router.get("/version", response_model=Version)
def version() -> Version:
    return Version(version=__version__)


# === Board endpoints ===


@router.get("/boards", response_model=List[BoardOut])
def list_boards(
    user: str = Depends(get_current_user),
    repo: BoardRepository = Depends(get_repository),
):
    return [board_out(b) for b in repo.list_boards()]


@router.post("/boards", response_model=BoardOut, status_code=201)
def create_board(
    payload: BoardIn,
    user: str = Depends(get_current_user),
    repo: BoardRepository = Depends(get_repository),
):
    board = repo.create_board(payload.name, [c.model_dump() for c in payload.columns], owner=user)
    return board_out(board)


@router.get("/boards/{board_id}", response_model=BoardOut)
def get_board(
    board_id: str,
    response: Response,
    user: str = Depends(get_current_user),
    repo: BoardRepository = Depends(get_repository),
):
    board = repo.get_board(board_id)
    response.headers["ETag"] = etag_for(board.version)
    return board_out(board)


@router.put("/boards/{board_id}", response_model=BoardOut)
def update_board(
    board_id: str,
    payload: BoardUpdate,
    user: str = Depends(get_current_user),
    repo: BoardRepository = Depends(get_repository),
    if_match: Optional[int] = Depends(get_if_match),
):
    new_columns = [c.model_dump() for c in payload.newColumns] if payload.newColumns is not None else None
    board = repo.update_board(
        board_id,
        name=payload.name,
        new_columns=new_columns,
        columns_to_remove=payload.columnsToRemove,
        if_match=if_match,
    )
    return board_out(board)


@router.delete("/boards/{board_id}", response_model=BoardDeleted)
def delete_board(
    board_id: str,
    user: str = Depends(get_current_user),
    repo: BoardRepository = Depends(get_repository),
    if_match: Optional[int] = Depends(get_if_match),
):
    return BoardDeleted(id=repo.delete_board(board_id, if_match=if_match))


# === Task endpoints ===


@router.post("/boards/{board_id}/columns/{column_id}/tasks", response_model=TaskOut, status_code=201)
def add_task(
    board_id: str,
    column_id: str,
    payload: TaskIn,
    user: str = Depends(get_current_user),
    repo: BoardRepository = Depends(get_repository),
    if_match: Optional[int] = Depends(get_if_match),
):
    subtasks = [s.model_dump() for s in payload.subtasks] if payload.subtasks is not None else None
    task = repo.add_task(
        board_id,
        column_id,
        title=payload.title,
        description=payload.description,
        status=payload.status,
        subtasks=subtasks,
        if_match=if_match,
    )
    return task_out(task)


@router.put("/boards/{board_id}/columns/{column_id}/tasks/{task_id}", response_model=TaskOut)
def edit_task(
    board_id: str,
    column_id: str,
    task_id: str,
    payload: TaskPatch,
    user: str = Depends(get_current_user),
    repo: BoardRepository = Depends(get_repository),
    if_match: Optional[int] = Depends(get_if_match),
):
    task = repo.edit_task(
        board_id, column_id, task_id, payload.model_dump(exclude_unset=True), if_match=if_match
    )
    return task_out(task)


@router.delete("/boards/{board_id}/columns/{column_id}/tasks/{task_id}", response_model=Message)
def delete_task(
    board_id: str,
    column_id: str,
    task_id: str,
    user: str = Depends(get_current_user),
    repo: BoardRepository = Depends(get_repository),
    if_match: Optional[int] = Depends(get_if_match),
):
    repo.delete_task(board_id, column_id, task_id, if_match=if_match)
    return Message(message="Task deleted")


@router.put("/boards/{board_id}/columns/{column_id}/tasks/{task_id}/subtask", response_model=TaskOut)
def edit_subtasks(
    board_id: str,
    column_id: str,
    task_id: str,
    payload: SubtaskPatch,
    user: str = Depends(get_current_user),
    repo: BoardRepository = Depends(get_repository),
    if_match: Optional[int] = Depends(get_if_match),
):
    task = repo.edit_subtasks(
        board_id, column_id, task_id, payload.model_dump(exclude_unset=True), if_match=if_match
    )
    return task_out(task)


# === Application ===


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        store = open_store(settings)
        app.state.repository = BoardRepository(
            store,
            task_statuses=settings.task_statuses,
            optimistic_locking=settings.optimistic_locking,
        )
        logger.info("board store opened (%s)", settings.database_url.split(":", 1)[0])
        try:
            yield
        finally:
            store.close()
            logger.info("board store closed")

    app = FastAPI(title="Kanban API", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["ETag"],
    )
    app.add_exception_handler(KanbanError, handle_kanban_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.include_router(router)
    return app


app = create_app()
