"""
Attention Classification

Decides what a work item needs from the actor, based on the ticket's stage
and the state of its pull requests.

The rules form an ordered decision table: rows are evaluated top to bottom
and the first matching row wins. Keep new rows in precedence order.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from taskwarden.models.pull_request import PullRequest, ReviewState
from taskwarden.models.ticket import Ticket
from taskwarden.models.work_item import AttentionStatus, WorkflowStage

Classification = Tuple[AttentionStatus, Optional[str]]


@dataclass(frozen=True)
class AttentionContext:
    """Facts about one work item that the rules inspect."""

    ticket: Ticket
    stage: WorkflowStage
    primary_pr: Optional[PullRequest]
    pull_requests: Sequence[PullRequest]

    @property
    def has_any_pr(self) -> bool:
        return len(self.pull_requests) > 0

    @property
    def has_draft_open_pr(self) -> bool:
        return any(pr.is_open and pr.is_draft for pr in self.pull_requests)

    @property
    def has_non_draft_open_pr(self) -> bool:
        return any(pr.is_open and not pr.is_draft for pr in self.pull_requests)

    @property
    def primary_review_state(self) -> Optional[ReviewState]:
        return self.primary_pr.review_state if self.primary_pr else None

    @property
    def has_pending_reviewers(self) -> bool:
        return bool(self.primary_pr and self.primary_pr.pending_reviewers)


@dataclass(frozen=True)
class AttentionRule:
    """One row of the decision table."""

    name: str
    matches: Callable[[AttentionContext], bool]
    status: AttentionStatus
    reason: Optional[str] = None


def _stage_is(stage: WorkflowStage) -> Callable[[AttentionContext], bool]:
    return lambda ctx: ctx.stage == stage


ATTENTION_RULES: List[AttentionRule] = [
    AttentionRule(
        "todo",
        _stage_is(WorkflowStage.TODO),
        AttentionStatus.NEEDS_MY_ATTENTION,
        "Start work on this ticket",
    ),
    AttentionRule(
        "in_analysis",
        _stage_is(WorkflowStage.IN_ANALYSIS),
        AttentionStatus.NEEDS_MY_ATTENTION,
        "In analysis",
    ),
    AttentionRule(
        "in_progress_without_pr",
        lambda ctx: ctx.stage == WorkflowStage.IN_PROGRESS and not ctx.has_any_pr,
        AttentionStatus.NEEDS_MY_ATTENTION,
        "Create a branch and PR",
    ),
    AttentionRule(
        "in_progress_draft_only",
        lambda ctx: ctx.stage == WorkflowStage.IN_PROGRESS
        and ctx.has_draft_open_pr
        and not ctx.has_non_draft_open_pr,
        AttentionStatus.NONE,
    ),
    AttentionRule(
        "in_progress_pr_open",
        lambda ctx: ctx.stage == WorkflowStage.IN_PROGRESS and ctx.has_non_draft_open_pr,
        AttentionStatus.NEEDS_MY_ATTENTION,
        "PR is open — move ticket to Code Review?",
    ),
    AttentionRule(
        "code_review_changes_requested",
        lambda ctx: ctx.stage == WorkflowStage.CODE_REVIEW
        and ctx.primary_review_state == ReviewState.CHANGES_REQUESTED,
        AttentionStatus.NEEDS_MY_ATTENTION,
        "Address review feedback",
    ),
    AttentionRule(
        "code_review_partially_approved",
        lambda ctx: ctx.stage == WorkflowStage.CODE_REVIEW
        and ctx.primary_review_state == ReviewState.APPROVED
        and ctx.has_pending_reviewers,
        AttentionStatus.WAITING_ON_OTHERS,
        "Waiting for remaining reviewers",
    ),
    AttentionRule(
        "code_review_approved",
        lambda ctx: ctx.stage == WorkflowStage.CODE_REVIEW
        and ctx.primary_review_state == ReviewState.APPROVED,
        AttentionStatus.NEEDS_MY_ATTENTION,
        "PR approved — move to QA or merge",
    ),
    AttentionRule(
        "code_review",
        _stage_is(WorkflowStage.CODE_REVIEW),
        AttentionStatus.WAITING_ON_OTHERS,
        "Waiting for code review",
    ),
    AttentionRule(
        "ready_for_qa",
        _stage_is(WorkflowStage.READY_FOR_QA),
        AttentionStatus.WAITING_ON_OTHERS,
        "Waiting for QA",
    ),
    AttentionRule(
        "in_qa",
        _stage_is(WorkflowStage.IN_QA),
        AttentionStatus.WAITING_ON_OTHERS,
        "In QA testing",
    ),
    AttentionRule(
        "ready_for_merge",
        _stage_is(WorkflowStage.READY_FOR_MERGE),
        AttentionStatus.NEEDS_MY_ATTENTION,
        "Merge the PR",
    ),
    AttentionRule(
        "blocked",
        _stage_is(WorkflowStage.BLOCKED),
        AttentionStatus.WAITING_ON_OTHERS,
        "Blocked",
    ),
    AttentionRule(
        "product_review",
        _stage_is(WorkflowStage.PRODUCT_REVIEW),
        AttentionStatus.WAITING_ON_OTHERS,
        "Waiting for product review",
    ),
    AttentionRule("done", _stage_is(WorkflowStage.DONE), AttentionStatus.NONE),
]


def is_future_sprint(ticket: Ticket) -> bool:
    return (ticket.sprint_state or "").casefold() == "future"


def classify_attention(
    ticket: Ticket,
    stage: WorkflowStage,
    primary_pr: Optional[PullRequest],
    pull_requests: Sequence[PullRequest],
) -> Classification:
    """
    Classify a work item.

    Future-sprint tickets are deprioritized before any stage rule runs.
    Stages without a row (including UNKNOWN) need no attention.

    Returns:
        Tuple of (attention status, human-readable reason or None)
    """
    if is_future_sprint(ticket):
        return AttentionStatus.NONE, f"Future sprint ({ticket.sprint_name})"

    ctx = AttentionContext(
        ticket=ticket,
        stage=stage,
        primary_pr=primary_pr,
        pull_requests=pull_requests,
    )
    for rule in ATTENTION_RULES:
        if rule.matches(ctx):
            return rule.status, rule.reason

    return AttentionStatus.NONE, None


def _pr_rank(pr: PullRequest) -> int:
    if pr.is_open and not pr.is_draft:
        return 2
    if pr.is_open:
        return 1
    return 0


def _updated_ts(pr: PullRequest) -> float:
    return pr.updated_at.timestamp() if pr.updated_at else float("-inf")


def select_primary_pr(pull_requests: Sequence[PullRequest]) -> Optional[PullRequest]:
    """
    Pick the most relevant pull request of a work item.

    Open non-draft beats open draft beats closed/merged; ties go to the most
    recently updated, then to the earliest in the input.
    """
    if not pull_requests:
        return None
    return max(pull_requests, key=lambda pr: (_pr_rank(pr), _updated_ts(pr)))
