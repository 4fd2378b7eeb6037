"""Factory functions for creating and wiring table services.

Provides a production factory backed by a database file and a test factory
backed by an in-memory database for fast, isolated testing.
"""

from pathlib import Path

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from tableview.services.lane import ExecutionLane
from tableview.services.methods import MethodRegistry
from tableview.services.table_service import TableService
from tableview.services.view_cache import ViewCache

MEMORY_DATABASE = ":memory:"


def create_async_engine_from_path(db_path: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine for the given database path.

    Args:
        db_path: Path to SQLite database file, or ":memory:" for in-memory.

    Returns:
        AsyncEngine instance configured for aiosqlite.
    """
    if db_path == MEMORY_DATABASE:
        url = "sqlite+aiosqlite:///:memory:"
    else:
        url = f"sqlite+aiosqlite:///{db_path}"
    return create_async_engine(url)


def create_table_service(db_path: Path | str) -> TableService:
    """Create a TableService for a database file.

    The parent directory is created if missing. The file itself is opened
    lazily by the first statement and kept open until the service closes.

    Args:
        db_path: Location of the SQLite database file.

    Returns:
        Configured TableService ready for use.
    """
    logger = structlog.get_logger(__name__)

    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    engine = create_async_engine_from_path(str(path))
    return _wire_service(engine, logger)


def create_test_table_service() -> TableService:
    """Create a TableService over a private in-memory database.

    Each call creates independent storage, so tests don't interfere.
    """
    logger = structlog.get_logger(__name__)
    engine = create_async_engine_from_path(MEMORY_DATABASE)
    return _wire_service(engine, logger)


def create_method_registry(service: TableService) -> MethodRegistry:
    return MethodRegistry(service=service, logger=structlog.get_logger(__name__))


def _wire_service(engine: AsyncEngine, logger: structlog.stdlib.BoundLogger) -> TableService:
    lane = ExecutionLane(engine=engine, logger=logger)
    view_cache = ViewCache(lane=lane, logger=logger)
    return TableService(lane=lane, view_cache=view_cache, logger=logger)
