from __future__ import annotations

import copy
import threading
from typing import Any, Dict, List, Optional

from .config import Settings
from .db import SqlStore
from .errors import VersionConflict
from .models import Board


MEMORY_URL = "memory://"


class MemoryStore:
    """In-memory document store for board aggregates.

    Boards are kept as serialized documents so that every load hands out a
    fresh copy and nothing is shared between requests until it is saved.
    """

    def __init__(self) -> None:
        self.documents: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def list_boards(self) -> List[Board]:
        with self._lock:
            docs = [copy.deepcopy(d) for d in self.documents.values()]
        return [Board.from_document(d) for d in docs]

    def get_board(self, board_id: str) -> Optional[Board]:
        with self._lock:
            doc = self.documents.get(board_id)
            doc = copy.deepcopy(doc) if doc is not None else None
        return Board.from_document(doc) if doc is not None else None

    def save_board(self, board: Board, expected_version: Optional[int] = None) -> Board:
        doc = board.to_document()
        with self._lock:
            if expected_version is not None:
                current = self.documents.get(board.id)
                if current is None or current["version"] != expected_version:
                    raise VersionConflict(details={"boardId": board.id})
            self.documents[board.id] = doc
        return board

    def delete_board(self, board_id: str) -> bool:
        with self._lock:
            return self.documents.pop(board_id, None) is not None

    def close(self) -> None:
        with self._lock:
            self.documents.clear()


def open_store(settings: Settings):
    """Open the document store named by ``settings.database_url``."""
    if settings.database_url == MEMORY_URL:
        return MemoryStore()
    store = SqlStore(settings.database_url)
    store.init_db()
    return store
