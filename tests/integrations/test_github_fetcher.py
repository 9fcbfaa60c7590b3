"""
GitHub Pull Request Fetcher Test Suite

Covers query building, cross-query deduplication, bounded detail fetching,
per-item failure isolation and routing into worklist buckets. The GitHub
client is replaced with an in-memory fake; no network access.
"""

import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

import asyncio
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Dict, List

import pytest

from taskwarden.config import ConfigurationError, Settings
from taskwarden.integrations.github.client import SearchHit
from taskwarden.integrations.github.fetcher import (
    PullRequestFetcher,
    extract_repo_full_name,
    to_pull_request,
)
from taskwarden.models.pull_request import (
    PullRequestState,
    ReviewEvent,
    ReviewState,
    SourceTag,
)

LOGIN = "jdoe"
NOW = datetime(2024, 5, 10, 9, 0, tzinfo=timezone.utc)


def make_settings(**overrides) -> Settings:
    data = dict(
        github_token="ghp_test",
        github_organization="acme",
        jira_server="https://jira.example.com",
        jira_email="jdoe@example.com",
        jira_api_token="jira_test",
    )
    data.update(overrides)
    return Settings(**data)


def make_pull(number, branch="feature", title=None, state="open", merged=False, draft=False,
              requested=(), labels=(), repo="acme/web-app"):
    return SimpleNamespace(
        number=number,
        title=title if title is not None else f"PR {number}",
        html_url=f"https://github.com/{repo}/pull/{number}",
        head=SimpleNamespace(ref=branch),
        state=state,
        merged=merged,
        draft=draft,
        requested_reviewers=[SimpleNamespace(login=login) for login in requested],
        labels=[SimpleNamespace(name=name) for name in labels],
        updated_at=NOW,
    )


def hit(number, repo="acme/web-app"):
    return SearchHit(
        number=number,
        html_url=f"https://github.com/{repo}/pull/{number}",
        repository_full_name=repo,
    )


class FakeGitHubClient:
    """Answers searches by query qualifier and records detail calls."""

    def __init__(self, results: Dict[str, List[SearchHit]], pulls=None, reviews=None,
                 failing=(), delay=0.0):
        self.results = results
        self.pulls = pulls or {}
        self.reviews = reviews or {}
        self.failing = set(failing)
        self.delay = delay
        self.searches: List[str] = []
        self.detail_calls: List[tuple] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def get_current_login(self):
        return LOGIN

    async def search_pull_requests(self, query):
        self.searches.append(query)
        for qualifier, hits in self.results.items():
            if qualifier in query:
                return list(hits)
        return []

    async def get_pull_request(self, owner, repo, number):
        self.detail_calls.append((f"{owner}/{repo}", number))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if number in self.failing:
                raise RuntimeError(f"boom {number}")
            return self.pulls.get(number) or make_pull(number, repo=f"{owner}/{repo}")
        finally:
            self.in_flight -= 1

    async def get_reviews(self, pull):
        return self.reviews.get(pull.number, [])


class TestHelpers:
    def test_repo_from_structured_field(self):
        assert extract_repo_full_name(hit(1, repo="acme/api")) == "acme/api"

    def test_repo_from_url_fallback(self):
        search_hit = SearchHit(number=1, html_url="https://github.com/acme/api/pull/1")
        assert extract_repo_full_name(search_hit) == "acme/api"

    def test_repo_unresolvable(self):
        assert extract_repo_full_name(SearchHit(number=1, html_url="not a url")) is None

    def test_to_pull_request_merged_wins_over_closed(self):
        pr = to_pull_request(
            make_pull(5, state="closed", merged=True, requested=["bob"], labels=["bug"]),
            repository_full_name="acme/web-app",
            review_state=ReviewState.APPROVED,
            source_tags=SourceTag.AUTHORED_MERGED,
        )
        assert pr.state == PullRequestState.MERGED
        assert pr.is_merged
        assert pr.pending_reviewers == ["bob"]
        assert pr.labels == ["bug"]
        assert pr.repository_short_name == "web-app"

    def test_to_pull_request_closed(self):
        pr = to_pull_request(make_pull(5, state="closed"), repository_full_name="acme/web-app")
        assert pr.state == PullRequestState.CLOSED
        assert not pr.is_open


class TestBuildQueries:
    def test_four_queries(self):
        fetcher = PullRequestFetcher(FakeGitHubClient({}), settings=make_settings())
        queries = fetcher.build_queries(LOGIN, now=NOW)

        assert queries[SourceTag.AUTHORED_OPEN] == "org:acme author:jdoe is:pr is:open"
        assert queries[SourceTag.AUTHORED_MERGED] == (
            "org:acme author:jdoe is:pr is:merged merged:>2024-05-03"
        )
        assert queries[SourceTag.REVIEW_REQUESTED] == "org:acme review-requested:jdoe is:pr is:open"
        assert queries[SourceTag.REVIEWED_BY] == (
            "org:acme reviewed-by:jdoe -author:jdoe is:pr is:open"
        )


class TestFetchAll:
    @pytest.mark.asyncio
    async def test_missing_configuration_raises_before_any_call(self):
        client = FakeGitHubClient({})
        fetcher = PullRequestFetcher(client, settings=make_settings(github_token=""))

        with pytest.raises(ConfigurationError):
            await fetcher.fetch_all()
        assert client.searches == []

    @pytest.mark.asyncio
    async def test_missing_organization_raises(self):
        fetcher = PullRequestFetcher(FakeGitHubClient({}), settings=make_settings(github_organization=" "))
        with pytest.raises(ConfigurationError):
            await fetcher.fetch_all()

    @pytest.mark.asyncio
    async def test_overlapping_hits_fetched_once_with_merged_tags(self):
        shared = hit(42)
        client = FakeGitHubClient(
            {
                "org:acme author:jdoe is:pr is:open": [shared],
                "review-requested:jdoe": [hit(42, repo="ACME/Web-App")],
                "reviewed-by:jdoe": [hit(7, repo="acme/api")],
            },
            pulls={42: make_pull(42, branch="ac/pm-42/fix", requested=[LOGIN])},
        )
        fetcher = PullRequestFetcher(client, settings=make_settings())

        hits = await fetcher.search_and_deduplicate(LOGIN)

        assert len(hits) == 2
        _, tags = hits[("acme/web-app", 42)]
        assert tags == SourceTag.AUTHORED_OPEN | SourceTag.REVIEW_REQUESTED

        result = await fetcher.fetch_all()
        assert sorted(client.detail_calls) == [("acme/api", 7), ("acme/web-app", 42)]
        assert list(result.authored_by_ticket) == ["PM-42"]
        assert [pr.number for _, pr in result.review_requests] == [42]
        assert result.review_requests[0][0] == "PM-42"
        assert [pr.number for _, pr in result.reviewed] == [7]

    @pytest.mark.asyncio
    async def test_detail_concurrency_is_bounded(self):
        client = FakeGitHubClient(
            {"org:acme author:jdoe is:pr is:open": [hit(n) for n in range(1, 13)]},
            delay=0.01,
        )
        settings = make_settings()
        fetcher = PullRequestFetcher(client, settings=settings)

        await fetcher.fetch_all()

        assert len(client.detail_calls) == 12
        assert client.max_in_flight == settings.github_detail_concurrency

    @pytest.mark.asyncio
    @pytest.mark.parametrize("concurrency", [5, 2])
    async def test_failures_release_their_slot(self, concurrency):
        numbers = range(1, 15)
        failing = [n for n in numbers if n % 2 == 0 or n == 13]
        client = FakeGitHubClient(
            {"org:acme author:jdoe is:pr is:open": [hit(n) for n in numbers]},
            pulls={n: make_pull(n, branch=f"ac/PM-{n}/change") for n in numbers},
            failing=failing,
            delay=0.01,
        )
        settings = make_settings(github_detail_concurrency=concurrency)
        fetcher = PullRequestFetcher(client, settings=settings)

        result = await asyncio.wait_for(fetcher.fetch_all(), timeout=5)

        expected = sorted(f"PM-{n}" for n in numbers if n not in failing)
        assert sorted(result.authored_by_ticket) == expected
        assert len(client.detail_calls) == 14
        assert client.max_in_flight == concurrency

    @pytest.mark.asyncio
    async def test_failed_detail_is_dropped(self):
        client = FakeGitHubClient(
            {"org:acme author:jdoe is:pr is:open": [hit(1), hit(2)]},
            pulls={
                1: make_pull(1, branch="ac/PM-1/a"),
                2: make_pull(2, branch="ac/PM-2/b"),
            },
            failing=[2],
        )
        fetcher = PullRequestFetcher(client, settings=make_settings())

        result = await fetcher.fetch_all()

        assert list(result.authored_by_ticket) == ["PM-1"]

    @pytest.mark.asyncio
    async def test_search_failure_propagates(self):
        client = FakeGitHubClient({})

        async def failing_search(query):
            raise RuntimeError("search down")

        client.search_pull_requests = failing_search
        fetcher = PullRequestFetcher(client, settings=make_settings())

        with pytest.raises(RuntimeError, match="search down"):
            await fetcher.fetch_all()

    @pytest.mark.asyncio
    async def test_reviews_are_reduced(self):
        client = FakeGitHubClient(
            {"org:acme author:jdoe is:pr is:open": [hit(3)]},
            pulls={3: make_pull(3, title="[PM-3] Title key")},
            reviews={
                3: [
                    ReviewEvent(reviewer="bob", state="APPROVED", submitted_at=NOW),
                    ReviewEvent(reviewer="eve", state="CHANGES_REQUESTED", submitted_at=NOW),
                ]
            },
        )
        fetcher = PullRequestFetcher(client, settings=make_settings())

        result = await fetcher.fetch_all()

        pr = result.authored_by_ticket["PM-3"][0]
        assert pr.review_state == ReviewState.CHANGES_REQUESTED


class TestRoute:
    def _detail(self, number, tags, key=None, requested=()):
        pr = to_pull_request(
            make_pull(number, requested=requested),
            repository_full_name="acme/web-app",
            source_tags=tags,
        )
        return key, pr

    def test_authored_without_key_is_skipped(self):
        fetcher = PullRequestFetcher(FakeGitHubClient({}), settings=make_settings())
        result = fetcher.route([self._detail(1, SourceTag.AUTHORED_OPEN)], LOGIN)
        assert result.authored_by_ticket == {}

    def test_authored_keys_are_uppercased_and_grouped(self):
        fetcher = PullRequestFetcher(FakeGitHubClient({}), settings=make_settings())
        result = fetcher.route(
            [
                self._detail(1, SourceTag.AUTHORED_OPEN, key="pm-1"),
                self._detail(2, SourceTag.AUTHORED_MERGED, key="PM-1"),
            ],
            LOGIN,
        )
        assert [pr.number for pr in result.authored_by_ticket["PM-1"]] == [1, 2]

    def test_review_request_keeps_orphans(self):
        fetcher = PullRequestFetcher(FakeGitHubClient({}), settings=make_settings())
        result = fetcher.route(
            [self._detail(1, SourceTag.REVIEW_REQUESTED, requested=[LOGIN])], LOGIN
        )
        assert result.review_requests[0][0] is None

    def test_only_direct_review_requests_by_default(self):
        fetcher = PullRequestFetcher(FakeGitHubClient({}), settings=make_settings())
        result = fetcher.route(
            [
                self._detail(1, SourceTag.REVIEW_REQUESTED, requested=["JDoe"]),
                self._detail(2, SourceTag.REVIEW_REQUESTED, requested=["team-bot"]),
            ],
            LOGIN,
        )
        assert [pr.number for _, pr in result.review_requests] == [1]

    def test_team_request_without_direct_reviewer_is_dropped(self):
        fetcher = PullRequestFetcher(FakeGitHubClient({}), settings=make_settings())
        result = fetcher.route(
            [self._detail(1, SourceTag.REVIEW_REQUESTED, requested=["someone-else"])],
            LOGIN,
        )
        assert result.review_requests == []

    def test_team_requests_count_when_filter_disabled(self):
        settings = make_settings(github_direct_review_requests_only=False)
        fetcher = PullRequestFetcher(FakeGitHubClient({}), settings=settings)
        result = fetcher.route(
            [self._detail(1, SourceTag.REVIEW_REQUESTED, requested=["someone-else"])],
            LOGIN,
        )
        assert [pr.number for _, pr in result.review_requests] == [1]

    @pytest.mark.asyncio
    async def test_key_found_anywhere_in_branch_by_default(self):
        client = FakeGitHubClient(
            {"org:acme author:jdoe is:pr is:open": [hit(9)]},
            pulls={9: make_pull(9, branch="feature/PM-9-fix", title="Fix thing")},
        )
        fetcher = PullRequestFetcher(client, settings=make_settings())

        result = await fetcher.fetch_all()

        assert list(result.authored_by_ticket) == ["PM-9"]
