"""
Ticket Identifier Extraction

Pulls a Jira key out of a branch name (``ac/PM-1234/short-description``,
else any ``PM-1234`` token in the branch) or, failing that, a
bracket-prefixed pull request title (``[PM-1234] Fix``).
Keys are returned uppercased.
"""

import re
from functools import lru_cache
from typing import Optional, Pattern

DEFAULT_BRANCH_PREFIX = "ac"

_LOOSE_KEY_PATTERN = re.compile(r"([A-Z]+-\d+)", re.IGNORECASE)
_TITLE_KEY_PATTERN = re.compile(r"^\[([A-Za-z]+-\d+)\]")


@lru_cache(maxsize=16)
def _branch_pattern(prefix: str) -> Pattern[str]:
    return re.compile(rf"^{re.escape(prefix)}/([A-Za-z]+-\d+)/", re.IGNORECASE)


def extract_from_branch(
    branch_name: Optional[str],
    prefix: str = DEFAULT_BRANCH_PREFIX,
    loose: bool = True,
) -> Optional[str]:
    """
    Extract a ticket key from a namespaced branch name.

    Args:
        branch_name: Head branch, e.g. "ac/pm-1234/fix-thing"
        prefix: Branch namespace preceding the key
        loose: Also accept a key anywhere in the branch when the
            namespaced convention does not match

    Returns:
        Uppercased key or None
    """
    if not branch_name:
        return None

    match = _branch_pattern(prefix).match(branch_name)
    if match:
        return match.group(1).upper()

    if loose:
        fallback = _LOOSE_KEY_PATTERN.search(branch_name)
        if fallback:
            return fallback.group(1).upper()

    return None


def extract_from_title(title: Optional[str]) -> Optional[str]:
    """Extract a key from a title starting with ``[KEY-123]``."""
    if not title:
        return None

    match = _TITLE_KEY_PATTERN.match(title)
    return match.group(1).upper() if match else None


def extract_ticket_key(
    branch_name: Optional[str],
    title: Optional[str],
    prefix: str = DEFAULT_BRANCH_PREFIX,
    loose: bool = True,
) -> Optional[str]:
    """Branch first, title as fallback."""
    return extract_from_branch(branch_name, prefix=prefix, loose=loose) or extract_from_title(
        title
    )
