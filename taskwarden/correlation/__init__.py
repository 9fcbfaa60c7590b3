"""
Correlation Engine

Matches pull requests to tickets and decides what needs the actor's attention.
"""

from taskwarden.correlation.identifiers import (
    extract_from_branch,
    extract_from_title,
    extract_ticket_key,
)
from taskwarden.correlation.reviews import reduce_review_state
from taskwarden.correlation.stages import StageMapper, parse_stage
from taskwarden.correlation.attention import (
    ATTENTION_RULES,
    AttentionRule,
    classify_attention,
    select_primary_pr,
)
from taskwarden.correlation.assembler import (
    WorkItemAssembler,
    create_stub_ticket,
    group_by_ticket,
    sort_work_items,
    stub_key_for,
)

__all__ = [
    "extract_from_branch",
    "extract_from_title",
    "extract_ticket_key",
    "reduce_review_state",
    "StageMapper",
    "parse_stage",
    "ATTENTION_RULES",
    "AttentionRule",
    "classify_attention",
    "select_primary_pr",
    "WorkItemAssembler",
    "create_stub_ticket",
    "group_by_ticket",
    "sort_work_items",
    "stub_key_for",
]
