"""
GitHub Pull Request Fetcher

Responsibilities:
- Run the four overlapping search queries (authored open, authored merged,
  review requested, reviewed by) concurrently
- Deduplicate hits by (repository, number) and OR their source tags
- Fetch details and reviews once per unique pull request, with a cap on
  in-flight fetches
- Route the results into authored / review-requested / reviewed buckets
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

from taskwarden.config import ConfigurationError, Settings, get_settings
from taskwarden.correlation.identifiers import extract_ticket_key
from taskwarden.correlation.reviews import reduce_review_state
from taskwarden.integrations.github.client import GitHubClient, SearchHit
from taskwarden.models.pull_request import (
    GitHubFetchResult,
    PullRequest,
    PullRequestState,
    SourceTag,
)

logger = logging.getLogger(__name__)

PullRequestKey = Tuple[str, int]
DetailResult = Tuple[Optional[str], PullRequest]


def extract_repo_full_name(hit: SearchHit) -> Optional[str]:
    """
    Resolve "owner/repo" for a search hit.

    Prefers the structured repository field and falls back to the web URL
    (https://github.com/owner/repo/pull/123).
    """
    if hit.repository_full_name:
        return hit.repository_full_name

    if hit.html_url:
        parsed = urlparse(hit.html_url)
        if parsed.scheme and parsed.netloc:
            segments = [s for s in parsed.path.split("/") if s]
            if len(segments) >= 2:
                return f"{segments[0]}/{segments[1]}"

    return None


class PullRequestFetcher:
    """Collects every pull request relevant to the authenticated user."""

    def __init__(
        self,
        github_client: Optional[GitHubClient] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self._client = github_client

    @property
    def client(self) -> GitHubClient:
        # Created lazily so configuration is validated before any client exists
        if self._client is None:
            self._client = GitHubClient(self.settings)
        return self._client

    def build_queries(self, login: str, now: Optional[datetime] = None) -> Dict[SourceTag, str]:
        org = self.settings.github_organization
        now = now or datetime.now(timezone.utc)
        merged_since = (now - timedelta(days=self.settings.github_merged_lookback_days)).strftime(
            "%Y-%m-%d"
        )
        return {
            SourceTag.AUTHORED_OPEN: f"org:{org} author:{login} is:pr is:open",
            SourceTag.AUTHORED_MERGED: f"org:{org} author:{login} is:pr is:merged merged:>{merged_since}",
            SourceTag.REVIEW_REQUESTED: f"org:{org} review-requested:{login} is:pr is:open",
            SourceTag.REVIEWED_BY: f"org:{org} reviewed-by:{login} -author:{login} is:pr is:open",
        }

    def check_configuration(self) -> None:
        if not self.settings.github_token.strip() or not self.settings.github_organization.strip():
            raise ConfigurationError(
                "GitHub configuration is incomplete. Set GITHUB_TOKEN and GITHUB_ORGANIZATION."
            )

    async def fetch_all(self) -> GitHubFetchResult:
        """
        Fetch authored pull requests, review requests and reviewed pull
        requests in one pass.

        Raises:
            ConfigurationError: If the token or organization is not set
            GithubException: If a search query fails
        """
        self.check_configuration()

        login = await self.client.get_current_login()
        hits = await self.search_and_deduplicate(login)
        details = await self.fetch_details(hits)
        result = self.route(details, login)

        logger.info(
            f"Found {len(hits)} unique PRs for {login}: "
            f"{len(result.authored_by_ticket)} authored ticket groups, "
            f"{len(result.review_requests)} review requests, "
            f"{len(result.reviewed)} reviewed"
        )
        return result

    async def search_and_deduplicate(
        self, login: str
    ) -> Dict[PullRequestKey, Tuple[SearchHit, SourceTag]]:
        """
        Run all search queries concurrently and merge the hits.

        Returns:
            Mapping of (repository full name, number) to the first hit seen
            and the OR of the tags of every query that returned it
        """
        queries = self.build_queries(login)
        tags = list(queries.keys())
        results = await asyncio.gather(
            *(self.client.search_pull_requests(queries[tag]) for tag in tags)
        )

        merged: Dict[PullRequestKey, Tuple[SearchHit, SourceTag]] = {}
        for tag, hits in zip(tags, results):
            for hit in hits:
                repo_full_name = extract_repo_full_name(hit)
                if repo_full_name is None:
                    logger.warning(f"Could not determine repo for PR #{hit.number}")
                    continue

                key = (repo_full_name.casefold(), hit.number)
                if key in merged:
                    existing, existing_tags = merged[key]
                    merged[key] = (existing, existing_tags | tag)
                else:
                    if hit.repository_full_name != repo_full_name:
                        hit = SearchHit(
                            number=hit.number,
                            html_url=hit.html_url,
                            repository_full_name=repo_full_name,
                        )
                    merged[key] = (hit, tag)

        return merged

    async def fetch_details(
        self, hits: Dict[PullRequestKey, Tuple[SearchHit, SourceTag]]
    ) -> List[DetailResult]:
        """
        Fetch detail + reviews for every unique hit.

        At most ``github_detail_concurrency`` fetches are in flight; failed
        items are logged and dropped.
        """
        semaphore = asyncio.Semaphore(self.settings.github_detail_concurrency)

        async def _bounded(hit: SearchHit, tags: SourceTag) -> Optional[DetailResult]:
            async with semaphore:
                return await self.fetch_detail(hit, tags)

        results = await asyncio.gather(*(_bounded(hit, tags) for hit, tags in hits.values()))
        return [result for result in results if result is not None]

    async def fetch_detail(self, hit: SearchHit, tags: SourceTag) -> Optional[DetailResult]:
        try:
            owner, repo = hit.repository_full_name.split("/", 1)
            pull = await self.client.get_pull_request(owner, repo, hit.number)
            reviews = await self.client.get_reviews(pull)

            pr = to_pull_request(
                pull,
                repository_full_name=hit.repository_full_name,
                review_state=reduce_review_state(reviews),
                source_tags=tags,
            )
            ticket_key = extract_ticket_key(
                pr.head_branch,
                pr.title,
                prefix=self.settings.github_branch_prefix,
                loose=self.settings.github_branch_loose_match,
            )
            return ticket_key, pr

        except Exception as e:
            logger.warning(
                f"Failed to fetch details for PR {hit.repository_full_name}#{hit.number}: {e}"
            )
            return None

    def route(self, details: List[DetailResult], login: str) -> GitHubFetchResult:
        authored: Dict[str, List[PullRequest]] = {}
        review_requests: List[DetailResult] = []
        reviewed: List[DetailResult] = []

        for ticket_key, pr in details:
            tags = pr.source_tags

            if tags & SourceTag.AUTHORED:
                if ticket_key:
                    authored.setdefault(ticket_key.upper(), []).append(pr)
                else:
                    logger.debug(f"Authored PR {pr.url} has no ticket key, skipping")

            if SourceTag.REVIEW_REQUESTED in tags:
                if self._is_direct_reviewer(pr, login):
                    review_requests.append((ticket_key, pr))
                else:
                    logger.debug(f"Skipping PR {pr.url}: {login} not directly requested as reviewer")

            if SourceTag.REVIEWED_BY in tags:
                reviewed.append((ticket_key, pr))

        return GitHubFetchResult(
            authored_by_ticket=authored,
            review_requests=review_requests,
            reviewed=reviewed,
        )

    def _is_direct_reviewer(self, pr: PullRequest, login: str) -> bool:
        if not self.settings.github_direct_review_requests_only:
            return True
        return any(r.casefold() == login.casefold() for r in pr.pending_reviewers)


def to_pull_request(
    pull,
    repository_full_name: str,
    review_state=None,
    source_tags: SourceTag = SourceTag.NONE,
) -> PullRequest:
    """Map a PyGithub pull request onto the PullRequest model."""
    merged = bool(pull.merged)
    if merged:
        state = PullRequestState.MERGED
    elif (pull.state or "").lower() == PullRequestState.CLOSED.value:
        state = PullRequestState.CLOSED
    else:
        state = PullRequestState.OPEN

    return PullRequest(
        number=pull.number,
        title=pull.title or "",
        url=pull.html_url,
        repository_full_name=repository_full_name,
        head_branch=pull.head.ref,
        state=state,
        is_draft=bool(pull.draft),
        is_merged=merged,
        review_state=review_state,
        pending_reviewers=[r.login for r in (pull.requested_reviewers or [])],
        labels=[label.name for label in (pull.labels or [])],
        updated_at=pull.updated_at,
        source_tags=source_tags,
    )
