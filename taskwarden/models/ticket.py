"""
Tracker Ticket Model

Immutable view of a Jira ticket for a single refresh cycle.
"""

from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import List, Optional


class Ticket(BaseModel):
    """A unit of tracked work. Re-created wholesale on each refresh."""

    model_config = ConfigDict(frozen=True)

    key: str
    summary: str
    status_name: str
    status_category_key: Optional[str] = None
    issue_type_name: Optional[str] = None
    priority_name: Optional[str] = None
    project_key: Optional[str] = None
    browse_url: str
    updated_at: Optional[datetime] = None
    labels: List[str] = []
    sprint_name: Optional[str] = None
    sprint_state: Optional[str] = None  # active, future, closed


class SprintInfo(BaseModel):
    """Active sprint of the configured board."""

    model_config = ConfigDict(frozen=True)

    name: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
