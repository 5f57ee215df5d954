"""
Health API Routes
"""
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from app.api.dependencies import get_store
from app.services.subscriber_store import SubscriberStore

router = APIRouter()


@router.get("/health")
def health_check(store: SubscriberStore = Depends(get_store)) -> JSONResponse:
    """Application and subscriber store health"""
    ok = store.is_healthy()
    return JSONResponse(
        status_code=status.HTTP_200_OK if ok else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if ok else "degraded",
            "store": {"ok": ok},
        },
    )
