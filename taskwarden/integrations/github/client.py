"""
GitHub API Client

Responsibilities:
- Pull request search (issues search API)
- Pull request detail and review list lookups
- Authenticated user lookup

PyGithub is blocking, so every call is pushed to a worker thread.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from github import Auth, Github
from github.PullRequest import PullRequest as GithubPullRequest

from taskwarden.config import Settings, get_settings
from taskwarden.models.pull_request import ReviewEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchHit:
    """Lightweight search result."""

    number: int
    html_url: str
    repository_full_name: Optional[str] = None


class GitHubClient:
    """GitHub API client wrapper."""

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.client = Github(
            auth=Auth.Token(settings.github_token) if settings.github_token else None,
            timeout=settings.github_timeout_seconds,
        )
        self._login: Optional[str] = None

    async def get_current_login(self) -> str:
        """Login of the authenticated user (cached after the first call)."""
        if self._login is None:
            user = await asyncio.to_thread(self.client.get_user)
            self._login = await asyncio.to_thread(lambda: user.login)
            logger.debug(f"GitHub authenticated as {self._login}")
        return self._login

    async def search_pull_requests(self, query: str) -> List[SearchHit]:
        """
        Run an issues search and return lightweight hits.

        Args:
            query: GitHub search query, e.g. "org:acme author:me is:pr is:open"

        Returns:
            List of SearchHit
        """
        logger.debug(f"Searching GitHub PRs: {query}")

        def _search() -> List[SearchHit]:
            return [self._to_search_hit(issue) for issue in self.client.search_issues(query)]

        hits = await asyncio.to_thread(_search)
        logger.debug(f"Query returned {len(hits)} results: {query}")
        return hits

    async def get_pull_request(self, owner: str, repo: str, number: int) -> GithubPullRequest:
        def _get() -> GithubPullRequest:
            repository = self.client.get_repo(f"{owner}/{repo}", lazy=True)
            return repository.get_pull(number)

        return await asyncio.to_thread(_get)

    async def get_reviews(self, pull_request: GithubPullRequest) -> List[ReviewEvent]:
        def _get() -> List[ReviewEvent]:
            return [
                ReviewEvent(
                    reviewer=review.user.login if review.user else "",
                    state=review.state or "",
                    submitted_at=review.submitted_at,
                )
                for review in pull_request.get_reviews()
            ]

        return await asyncio.to_thread(_get)

    @staticmethod
    def _to_search_hit(issue) -> SearchHit:
        # Search results often lack the repository object; reading
        # issue.repository would trigger an extra request, so use raw data.
        raw = getattr(issue, "raw_data", None) or {}
        repository = raw.get("repository") or {}
        return SearchHit(
            number=issue.number,
            html_url=issue.html_url or raw.get("html_url", ""),
            repository_full_name=repository.get("full_name"),
        )
