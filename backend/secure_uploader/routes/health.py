"""Health check: API liveness plus the state of both stores."""
from datetime import datetime, timezone
from fastapi import APIRouter, Request

from secure_uploader import __version__
from secure_uploader.errors import StoreUnavailable

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request):
    """Verify API, metadata store and blob store connectivity."""
    state = request.app.state

    database = {"connected": True}
    try:
        await state.file_records.ping()
    except StoreUnavailable as e:
        database = {"connected": False, "error": e.message}

    blob_store = {**state.blob_store.status(), "connected": True}
    try:
        await state.blob_store.ping()
    except StoreUnavailable as e:
        blob_store.update(connected=False, error=e.message)
    else:
        blob_store.update(state.blob_store.status())

    healthy = database["connected"] and blob_store["connected"]
    return {
        "success": True,
        "status": "ok" if healthy else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": database,
        "blobStore": blob_store,
        "environment": state.settings.ENVIRONMENT,
        "version": __version__,
    }
