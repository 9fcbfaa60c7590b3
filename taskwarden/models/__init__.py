# Shared data models
from taskwarden.models.ticket import Ticket, SprintInfo
from taskwarden.models.pull_request import (
    PullRequest,
    PullRequestState,
    ReviewState,
    ReviewEvent,
    SourceTag,
    GitHubFetchResult,
)
from taskwarden.models.work_item import (
    WorkflowStage,
    AttentionStatus,
    WorkItem,
    DashboardSnapshot,
)

__all__ = [
    "Ticket",
    "SprintInfo",
    "PullRequest",
    "PullRequestState",
    "ReviewState",
    "ReviewEvent",
    "SourceTag",
    "GitHubFetchResult",
    "WorkflowStage",
    "AttentionStatus",
    "WorkItem",
    "DashboardSnapshot",
]
