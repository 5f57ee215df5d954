from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from app.api.dependencies import get_store
from app.core.security import require_dashboard_access
from app.services.dashboard_service import DashboardView, build_dashboard
from app.services.subscriber_store import SubscriberStore

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parents[2] / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

router = APIRouter(dependencies=[Depends(require_dashboard_access)])
api_router = APIRouter(dependencies=[Depends(require_dashboard_access)])


def load_dashboard(store: SubscriberStore) -> DashboardView:
    try:
        records = store.load()
    except Exception as exc:
        logger.error("Dashboard could not read subscribers: %s", exc)
        records = []
    return build_dashboard(records)


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard_page(request: Request, store: SubscriberStore = Depends(get_store)) -> HTMLResponse:
    view = load_dashboard(store)
    return templates.TemplateResponse(request, "dashboard.html", {"view": view})


@api_router.get("/dashboard")
def dashboard_data(store: SubscriberStore = Depends(get_store)) -> dict:
    return load_dashboard(store).to_dict()
