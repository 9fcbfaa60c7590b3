"""
GitHub Integration Module

Provides pull request search, detail lookups and source tagging.
"""

from taskwarden.integrations.github.client import GitHubClient, SearchHit
from taskwarden.integrations.github.fetcher import (
    PullRequestFetcher,
    extract_repo_full_name,
    to_pull_request,
)

__all__ = [
    "GitHubClient",
    "SearchHit",
    "PullRequestFetcher",
    "extract_repo_full_name",
    "to_pull_request",
]
