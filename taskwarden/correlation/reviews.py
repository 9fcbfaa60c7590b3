"""
Review-State Reduction

Collapses per-reviewer review events into one verdict for a pull request.
"""

from datetime import datetime, timezone
from typing import Dict, Iterable, Optional

from taskwarden.models.pull_request import ReviewEvent, ReviewState

APPROVED = "APPROVED"
CHANGES_REQUESTED = "CHANGES_REQUESTED"

_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def _submitted_key(event: ReviewEvent) -> datetime:
    if event.submitted_at is None:
        return _EARLIEST
    if event.submitted_at.tzinfo is None:
        return event.submitted_at.replace(tzinfo=timezone.utc)
    return event.submitted_at


def reduce_review_state(events: Iterable[ReviewEvent]) -> Optional[ReviewState]:
    """
    Reduce review events to a single verdict.

    Only APPROVED and CHANGES_REQUESTED events count, and only the latest
    one per reviewer. Changes requested by anyone beats approvals.

    Returns:
        None when there are no reviews at all, PENDING when reviews exist
        but none of them approve or request changes.
    """
    events = list(events)
    if not events:
        return None

    latest_by_reviewer: Dict[str, ReviewEvent] = {}
    for event in events:
        state = event.state.upper()
        if state not in (APPROVED, CHANGES_REQUESTED):
            continue
        current = latest_by_reviewer.get(event.reviewer)
        if current is None or _submitted_key(event) > _submitted_key(current):
            latest_by_reviewer[event.reviewer] = event

    states = {event.state.upper() for event in latest_by_reviewer.values()}
    if CHANGES_REQUESTED in states:
        return ReviewState.CHANGES_REQUESTED
    if APPROVED in states:
        return ReviewState.APPROVED
    return ReviewState.PENDING
