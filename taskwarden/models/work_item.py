"""
Work Item Model

The aggregate root of the worklist: one ticket, its pull requests, and the
derived stage and attention.
"""

from pydantic import BaseModel, ConfigDict
from datetime import datetime
from enum import Enum, IntEnum
from typing import List, Optional

from taskwarden.models.pull_request import PullRequest
from taskwarden.models.ticket import SprintInfo, Ticket


class WorkflowStage(str, Enum):
    """Canonical workflow position derived from a ticket's raw status."""

    TODO = "ToDo"
    IN_ANALYSIS = "InAnalysis"
    IN_PROGRESS = "InProgress"
    CODE_REVIEW = "CodeReview"
    READY_FOR_QA = "ReadyForQa"
    IN_QA = "InQa"
    READY_FOR_MERGE = "ReadyForMerge"
    BLOCKED = "Blocked"
    PRODUCT_REVIEW = "ProductReview"
    DONE = "Done"
    UNKNOWN = "Unknown"


class AttentionStatus(IntEnum):
    """Ordinal values are the worklist sort order."""

    NEEDS_MY_ATTENTION = 0
    WAITING_ON_OTHERS = 1
    NONE = 2
    NEEDS_MY_REVIEW = 3
    REVIEWED = 4


class WorkItem(BaseModel):
    """One entry of the worklist. Never mutated after construction."""

    model_config = ConfigDict(frozen=True)

    ticket_key: str
    ticket: Ticket
    pull_requests: List[PullRequest] = []
    primary_pull_request: Optional[PullRequest] = None
    stage: WorkflowStage = WorkflowStage.UNKNOWN
    attention: AttentionStatus = AttentionStatus.NONE
    attention_reason: Optional[str] = None
    last_refreshed: datetime


class DashboardSnapshot(BaseModel):
    """Point-in-time state served to the UI."""

    model_config = ConfigDict(frozen=True)

    work_items: List[WorkItem] = []
    last_refreshed: Optional[datetime] = None
    is_loading: bool = False
    error: Optional[str] = None
    github_login: Optional[str] = None
    jira_display_name: Optional[str] = None
    active_sprint: Optional[SprintInfo] = None
