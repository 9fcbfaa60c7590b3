"""
Code-Host Pull Request Models

Pull requests found through the GitHub search queries, plus the review
events used to derive their review verdict.
"""

from pydantic import BaseModel, ConfigDict
from datetime import datetime
from enum import Enum, Flag, auto
from typing import Dict, List, Optional, Tuple


class SourceTag(Flag):
    """Which search queries produced a pull request."""

    NONE = 0
    AUTHORED_OPEN = auto()
    AUTHORED_MERGED = auto()
    REVIEW_REQUESTED = auto()
    REVIEWED_BY = auto()

    AUTHORED = AUTHORED_OPEN | AUTHORED_MERGED


class PullRequestState(str, Enum):
    """Lifecycle state. MERGED wins over CLOSED when the merged flag is set."""

    OPEN = "open"
    CLOSED = "closed"
    MERGED = "merged"


class ReviewState(str, Enum):
    """Reduced review verdict. A missing verdict (None) means no reviews at all."""

    PENDING = "pending"
    APPROVED = "approved"
    CHANGES_REQUESTED = "changes_requested"


class ReviewEvent(BaseModel):
    """A single submitted review."""

    model_config = ConfigDict(frozen=True)

    reviewer: str
    state: str  # APPROVED, CHANGES_REQUESTED, COMMENTED, DISMISSED, PENDING
    submitted_at: Optional[datetime] = None


class PullRequest(BaseModel):
    """Fully detailed pull request. Owned by exactly one WorkItem."""

    model_config = ConfigDict(frozen=True)

    number: int
    title: str
    url: str
    repository_full_name: str
    head_branch: str
    state: PullRequestState = PullRequestState.OPEN
    is_draft: bool = False
    is_merged: bool = False
    review_state: Optional[ReviewState] = None
    pending_reviewers: List[str] = []
    labels: List[str] = []
    updated_at: Optional[datetime] = None
    source_tags: SourceTag = SourceTag.NONE

    @property
    def is_open(self) -> bool:
        return self.state == PullRequestState.OPEN

    @property
    def repository_short_name(self) -> str:
        return self.repository_full_name.split("/")[-1]


class GitHubFetchResult(BaseModel):
    """Pull requests routed into the buckets the assembler consumes."""

    model_config = ConfigDict(frozen=True)

    authored_by_ticket: Dict[str, List[PullRequest]] = {}
    review_requests: List[Tuple[Optional[str], PullRequest]] = []
    reviewed: List[Tuple[Optional[str], PullRequest]] = []
