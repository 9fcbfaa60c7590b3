"""
Work-Item Assembly

Merges authored tickets, review requests, orphan review requests and
already-reviewed pull requests into one worklist.

Ticket keys are unique (case-insensitive) across the worklist: the first
group to claim a key keeps it and later groups skip it. Groups must be added
in order, one after another, after all fetches have completed.
"""

import logging
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from taskwarden.correlation.attention import classify_attention, select_primary_pr
from taskwarden.correlation.stages import StageMapper
from taskwarden.models.pull_request import PullRequest
from taskwarden.models.ticket import Ticket
from taskwarden.models.work_item import AttentionStatus, WorkflowStage, WorkItem

logger = logging.getLogger(__name__)

STUB_STATUS_NAME = "Code Review"
REVIEW_REQUESTED_REASON = "Review requested"
REVIEW_SUBMITTED_REASON = "Review submitted"


def stub_key_for(pr: PullRequest) -> str:
    """Key for a pull request without a ticket, e.g. ``web-app#123``."""
    return f"{pr.repository_short_name}#{pr.number}"


def create_stub_ticket(key: str, pr: PullRequest) -> Ticket:
    """Placeholder ticket standing in for a missing tracker record."""
    return Ticket(
        key=key,
        summary=pr.title,
        status_name=STUB_STATUS_NAME,
        browse_url=pr.url,
        updated_at=pr.updated_at,
    )


def group_by_ticket(
    entries: Iterable[Tuple[Optional[str], PullRequest]],
) -> Tuple["OrderedDict[str, List[PullRequest]]", List[PullRequest]]:
    """
    Split (ticket key, PR) pairs into PRs grouped by key and orphan PRs.

    Grouping is case-insensitive; the first spelling of a key is kept.
    """
    grouped: "OrderedDict[str, List[PullRequest]]" = OrderedDict()
    spelling: Dict[str, str] = {}
    orphans: List[PullRequest] = []

    for key, pr in entries:
        if not key:
            orphans.append(pr)
            continue
        folded = key.casefold()
        canonical = spelling.setdefault(folded, key)
        grouped.setdefault(canonical, []).append(pr)

    return grouped, orphans


def sort_work_items(items: Iterable[WorkItem]) -> List[WorkItem]:
    """Attention ascending, then ticket updated descending (missing = oldest)."""

    def sort_key(item: WorkItem):
        updated = item.ticket.updated_at
        ts = updated.timestamp() if updated else float("-inf")
        return (int(item.attention), -ts)

    return sorted(items, key=sort_key)


class WorkItemAssembler:
    """
    Ordered pipeline over an owned set of claimed ticket keys.

    Usage:
        assembler = WorkItemAssembler(stage_mapper)
        assembler.add_authored(tickets, prs_by_ticket)
        assembler.add_review_requests(groups, tickets_by_key)
        assembler.add_orphan_review_requests(orphans)
        assembler.add_reviewed(groups, orphans, tickets_by_key)
        worklist = assembler.build()
    """

    def __init__(self, stage_mapper: StageMapper, now: Optional[datetime] = None):
        self.stage_mapper = stage_mapper
        self.now = now or datetime.now(timezone.utc)
        self._claimed: Set[str] = set()
        self._items: List[WorkItem] = []

    # Claimed keys

    def is_claimed(self, key: str) -> bool:
        return key.casefold() in self._claimed

    def unclaimed(self, keys: Iterable[str]) -> List[str]:
        """Keys not yet in the worklist, in input order, without duplicates."""
        seen: Set[str] = set()
        result = []
        for key in keys:
            folded = key.casefold()
            if folded in self._claimed or folded in seen:
                continue
            seen.add(folded)
            result.append(key)
        return result

    def _claim(self, item: WorkItem) -> bool:
        folded = item.ticket_key.casefold()
        if folded in self._claimed:
            logger.debug(f"Skipping {item.ticket_key}: already in worklist")
            return False
        self._claimed.add(folded)
        self._items.append(item)
        return True

    @property
    def items(self) -> List[WorkItem]:
        return list(self._items)

    # Groups

    def add_authored(
        self,
        tickets: Sequence[Ticket],
        prs_by_ticket: Mapping[str, Sequence[PullRequest]],
    ) -> int:
        """
        Group 1: tickets assigned to the actor plus tickets found only via
        authored pull requests. Authored PR keys with no ticket at all get a
        stub ticket. Returns the number of items added.
        """
        prs_folded: "OrderedDict[str, List[PullRequest]]" = OrderedDict()
        spelling: Dict[str, str] = {}
        for key, prs in prs_by_ticket.items():
            folded = key.casefold()
            spelling.setdefault(folded, key)
            prs_folded.setdefault(folded, []).extend(prs)

        resolved = [(ticket.key, ticket) for ticket in tickets]
        matched = {ticket.key.casefold() for ticket in tickets}
        for folded, prs in prs_folded.items():
            if folded not in matched and prs:
                key = spelling[folded]
                logger.info(f"No Jira ticket found for {key}, using a stub ticket")
                resolved.append((key, create_stub_ticket(key, prs[0])))

        added = 0
        for key, ticket in resolved:
            prs = prs_folded.get(key.casefold(), [])
            primary = select_primary_pr(prs)
            stage = self.stage_mapper.map(ticket.status_name)
            attention, reason = classify_attention(ticket, stage, primary, prs)
            added += self._claim(
                self._work_item(key, ticket, prs, primary, stage, attention, reason)
            )
        return added

    def add_review_requests(
        self,
        groups: Mapping[str, Sequence[PullRequest]],
        tickets_by_key: Mapping[str, Ticket],
    ) -> int:
        """
        Group 2: review requests with a ticket key not already claimed.

        The ticket's own classification is reinterpreted: when the ticket is
        waiting or idle, the review is what needs doing; otherwise the ticket's
        own work still comes first and the item is shown as waiting.
        """
        tickets = _fold_keys(tickets_by_key)
        added = 0
        for key, prs in groups.items():
            if self.is_claimed(key):
                continue

            prs = list(prs)
            ticket = tickets.get(key.casefold()) or create_stub_ticket(key, prs[0])
            primary = select_primary_pr(prs)
            stage = self.stage_mapper.map(ticket.status_name)
            ticket_attention, ticket_reason = classify_attention(ticket, stage, primary, prs)

            if ticket_attention in (AttentionStatus.WAITING_ON_OTHERS, AttentionStatus.NONE):
                attention = AttentionStatus.NEEDS_MY_REVIEW
                reason = REVIEW_REQUESTED_REASON
            else:
                attention = AttentionStatus.WAITING_ON_OTHERS
                reason = ticket_reason or f"Waiting ({ticket.status_name})"

            added += self._claim(
                self._work_item(key, ticket, prs, primary, stage, attention, reason)
            )
        return added

    def add_orphan_review_requests(self, prs: Iterable[PullRequest]) -> int:
        """Group 3: review requests without a resolvable ticket key."""
        added = 0
        for pr in prs:
            key = stub_key_for(pr)
            added += self._claim(
                self._work_item(
                    key,
                    create_stub_ticket(key, pr),
                    [pr],
                    pr,
                    WorkflowStage.CODE_REVIEW,
                    AttentionStatus.NEEDS_MY_REVIEW,
                    REVIEW_REQUESTED_REASON,
                )
            )
        return added

    def add_reviewed(
        self,
        groups: Mapping[str, Sequence[PullRequest]],
        orphans: Iterable[PullRequest],
        tickets_by_key: Mapping[str, Ticket],
    ) -> int:
        """Group 4: open pull requests the actor has already reviewed."""
        tickets = _fold_keys(tickets_by_key)
        added = 0
        for key, prs in groups.items():
            if self.is_claimed(key):
                continue

            prs = list(prs)
            ticket = tickets.get(key.casefold()) or create_stub_ticket(key, prs[0])
            added += self._claim(
                self._work_item(
                    key,
                    ticket,
                    prs,
                    select_primary_pr(prs),
                    self.stage_mapper.map(ticket.status_name),
                    AttentionStatus.REVIEWED,
                    REVIEW_SUBMITTED_REASON,
                )
            )

        for pr in orphans:
            key = stub_key_for(pr)
            if self.is_claimed(key):
                continue
            added += self._claim(
                self._work_item(
                    key,
                    create_stub_ticket(key, pr),
                    [pr],
                    pr,
                    WorkflowStage.CODE_REVIEW,
                    AttentionStatus.REVIEWED,
                    REVIEW_SUBMITTED_REASON,
                )
            )
        return added

    def build(self) -> List[WorkItem]:
        return sort_work_items(self._items)

    def _work_item(
        self,
        key: str,
        ticket: Ticket,
        prs: Sequence[PullRequest],
        primary: Optional[PullRequest],
        stage: WorkflowStage,
        attention: AttentionStatus,
        reason: Optional[str],
    ) -> WorkItem:
        return WorkItem(
            ticket_key=key,
            ticket=ticket,
            pull_requests=list(prs),
            primary_pull_request=primary,
            stage=stage,
            attention=attention,
            attention_reason=reason,
            last_refreshed=self.now,
        )


def _fold_keys(tickets_by_key: Mapping[str, Ticket]) -> Dict[str, Ticket]:
    return {key.casefold(): ticket for key, ticket in tickets_by_key.items()}
