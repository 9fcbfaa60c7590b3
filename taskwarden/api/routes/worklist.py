"""
Worklist API Routes

Serves the latest dashboard snapshot and triggers manual refreshes.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from taskwarden.models.work_item import DashboardSnapshot
from taskwarden.services.dashboard_state import DashboardState
from taskwarden.services.refresh import RefreshService

logger = logging.getLogger(__name__)

router = APIRouter()

# Lazy initialization to avoid creating API clients at import time
_dashboard_state: Optional[DashboardState] = None
_refresh_service: Optional[RefreshService] = None


def get_dashboard_state() -> DashboardState:
    """Get the shared DashboardState instance."""
    global _dashboard_state
    if _dashboard_state is None:
        _dashboard_state = DashboardState()
    return _dashboard_state


def get_refresh_service() -> RefreshService:
    """Get the shared RefreshService instance with lazy initialization."""
    global _refresh_service
    if _refresh_service is None:
        _refresh_service = RefreshService(get_dashboard_state())
    return _refresh_service


class RefreshResponse(BaseModel):
    """Manual refresh response."""

    status: str = Field(..., description="Always 'scheduled'")
    message: str


class StatusResponse(BaseModel):
    """Refresh status without the work items."""

    is_loading: bool
    last_refreshed: Optional[datetime] = None
    error: Optional[str] = None
    work_item_count: int
    github_login: Optional[str] = None
    jira_display_name: Optional[str] = None


@router.get("", response_model=DashboardSnapshot)
async def get_worklist():
    """Latest worklist, sorted by attention."""
    return get_dashboard_state().snapshot


@router.get("/status", response_model=StatusResponse)
async def get_status():
    snapshot = get_dashboard_state().snapshot
    return StatusResponse(
        is_loading=snapshot.is_loading,
        last_refreshed=snapshot.last_refreshed,
        error=snapshot.error,
        work_item_count=len(snapshot.work_items),
        github_login=snapshot.github_login,
        jira_display_name=snapshot.jira_display_name,
    )


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_worklist():
    """Schedule a refresh without waiting for the next interval."""
    get_refresh_service().request_manual_refresh()
    return RefreshResponse(status="scheduled", message="Refresh scheduled")
