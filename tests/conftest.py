import pytest
from fastapi.testclient import TestClient

from kanban.config import Settings
from kanban.main import create_app
from kanban.repository import BoardRepository
from kanban.storage import MemoryStore


@pytest.fixture
def settings():
    return Settings(database_url="memory://", task_statuses=("todo", "doing", "done"))


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as client:
        yield client


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def repo(store):
    return BoardRepository(store, task_statuses=("todo", "doing", "done"))


@pytest.fixture
def board(repo):
    return repo.create_board("Sprint", [{"name": "Todo"}, {"name": "Done"}], owner="alice")


@pytest.fixture
def task(repo, board):
    return repo.add_task(
        board.id,
        board.columns[0].id,
        title="Write docs",
        description="README and API notes",
        status="todo",
        subtasks=[{"title": "outline"}, {"title": "draft", "isCompleted": True}],
    )
