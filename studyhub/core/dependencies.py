"""
Dependencies - shared FastAPI dependencies for the routes
"""
from fastapi import HTTPException, Request, status

from studyhub.storage.base import ContentStorage


# ============= STORAGE DEPENDENCY =============

def get_storage(request: Request) -> ContentStorage:
    """
    Storage backend built at startup and kept on app.state

    Usage:
        @router.get("/mains")
        def list_mains(storage: ContentStorage = Depends(get_storage)):
            ...
    """
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Storage is not initialised"
        )
    return storage
