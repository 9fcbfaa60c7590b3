"""
Unit Tests for Ticket Identifier Extraction
"""

import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

import pytest

from taskwarden.correlation.identifiers import (
    extract_from_branch,
    extract_from_title,
    extract_ticket_key,
)


@pytest.mark.parametrize(
    "branch",
    ["ac/pm-1234/fix-thing", "AC/PM-1234/fix-thing", "ac/Pm-1234/fix-thing"],
)
def test_branch_extraction_is_case_normalizing(branch):
    assert extract_from_branch(branch) == "PM-1234"


def test_branch_extraction_is_idempotent():
    first = extract_from_branch("ac/pm-1234/fix-thing")
    assert extract_from_branch(f"ac/{first}/fix-thing") == first


def test_strict_branch_requires_prefix_and_trailing_description():
    assert extract_from_branch("feature/PM-1234/fix", loose=False) is None
    assert extract_from_branch("ac/PM-1234", loose=False) is None
    assert extract_from_branch("PM-1234-fix", loose=False) is None


def test_branch_custom_prefix():
    assert extract_from_branch("jd/core-42/cleanup", prefix="jd") == "CORE-42"
    assert extract_from_branch("ac/core-42/cleanup", prefix="jd", loose=False) is None


def test_branch_falls_back_to_key_anywhere():
    assert extract_from_branch("feature/pm-77-speedup") == "PM-77"
    assert extract_from_branch("ac/PM-1234") == "PM-1234"
    assert extract_ticket_key("feature/PM-1234-fix", "Fix thing") == "PM-1234"


def test_namespaced_key_wins_over_fallback():
    assert extract_from_branch("ac/pm-1/fix-pm-2") == "PM-1"


def test_fallback_can_be_disabled():
    assert extract_from_branch("feature/pm-77-speedup", loose=False) is None
    assert extract_ticket_key("feature/PM-1234-fix", "Fix thing", loose=False) is None


def test_branch_without_key_token():
    assert extract_from_branch("feature/speedup") is None
    assert extract_from_branch("hotfix/login-page") is None


def test_branch_empty_or_none():
    assert extract_from_branch("") is None
    assert extract_from_branch(None) is None


def test_title_extraction():
    assert extract_from_title("[pm-5678] Fix bug") == "PM-5678"
    assert extract_from_title("[PM-5678]Fix bug") == "PM-5678"


def test_title_requires_leading_bracket():
    assert extract_from_title("Fix bug [PM-5678]") is None
    assert extract_from_title("PM-5678 Fix bug") is None
    assert extract_from_title(None) is None


def test_branch_wins_over_title():
    assert extract_ticket_key("ac/pm-1/fix", "[PM-2] Fix") == "PM-1"


def test_title_used_as_fallback():
    assert extract_ticket_key("main-fix", "[pm-2] Fix") == "PM-2"


def test_no_match_anywhere_yields_none():
    assert extract_ticket_key("some-branch", "Fix the thing") is None
