"""FastAPI dependencies for progress tracking.

Provides dependency injection for:
- Progress store
- Unlock flag store
- Error handlers
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .store import CassandraProgressStore, ProgressError, StoreUnavailableError
from .unlock import FlagStore


def handle_progress_error(error: ProgressError) -> HTTPException:
    """Convert progress errors to HTTP exceptions."""
    status_map = {
        "progress_load_failed": status.HTTP_502_BAD_GATEWAY,
        "progress_persist_failed": status.HTTP_502_BAD_GATEWAY,
        "store_unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(
        status_code=status_code,
        detail=error.message,
    )


async def get_progress_store(request: Request) -> CassandraProgressStore:
    """Get progress store from app state."""
    store = getattr(request.app.state, "progress_store", None)
    if store is None:
        raise handle_progress_error(StoreUnavailableError())
    return store


async def get_flag_store(request: Request) -> FlagStore:
    """Get unlock flag store from app state (requires Redis)."""
    flags = getattr(request.app.state, "flag_store", None)
    if flags is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Servico de desbloqueio nao disponivel",
        )
    return flags


# Type aliases for dependency injection
ProgressStoreDep = Annotated[CassandraProgressStore, Depends(get_progress_store)]
FlagStoreDep = Annotated[FlagStore, Depends(get_flag_store)]
