"""
Work-Item Aggregation Service

Full cycle:
Jira tickets + GitHub PRs (concurrently) -> missing-ticket lookups ->
stage mapping -> attention -> assembled, sorted worklist
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from taskwarden.config import Settings, get_settings, load_status_mappings
from taskwarden.correlation.assembler import WorkItemAssembler, group_by_ticket
from taskwarden.correlation.stages import StageMapper
from taskwarden.integrations.github.fetcher import PullRequestFetcher
from taskwarden.integrations.jira.client import JiraClient
from taskwarden.models.ticket import Ticket
from taskwarden.models.work_item import WorkItem

logger = logging.getLogger(__name__)

ProgressSink = Callable[[str], None]


class WorkItemAggregator:
    """
    Builds the worklist for one refresh cycle.

    Pipeline steps:
    1. Fetch assigned Jira tickets and all GitHub PR data concurrently
    2. Look up tickets referenced only by authored PRs
    3. Add authored items
    4. Look up and add review-requested items, then orphan review requests
    5. Look up and add already-reviewed items
    6. Sort
    """

    def __init__(
        self,
        jira_client: Optional[JiraClient] = None,
        pr_fetcher: Optional[PullRequestFetcher] = None,
        settings: Optional[Settings] = None,
        stage_mapper: Optional[StageMapper] = None,
    ):
        self.settings = settings or get_settings()
        self.jira_client = jira_client or JiraClient(self.settings)
        self.pr_fetcher = pr_fetcher or PullRequestFetcher(settings=self.settings)
        self.stage_mapper = stage_mapper or StageMapper(load_status_mappings(self.settings))

    async def aggregate(self, progress: Optional[ProgressSink] = None) -> List[WorkItem]:
        """
        Run one aggregation cycle.

        Args:
            progress: Optional sink for coarse milestone messages

        Returns:
            Worklist sorted by attention, then most recently updated

        Raises:
            ConfigurationError: Before any network call if credentials are missing
            Exception: Any top-level Jira or GitHub failure propagates unchanged
        """
        report = _reporter(progress)

        self.jira_client.check_configuration()
        self.pr_fetcher.check_configuration()

        report("Fetching Jira tickets, GitHub PRs, and review requests")
        tickets, github_data = await asyncio.gather(
            self.jira_client.get_my_tickets(),
            self.pr_fetcher.fetch_all(),
        )
        tickets = list(tickets)
        prs_by_ticket = github_data.authored_by_ticket

        report(
            f"Received {len(tickets)} tickets, {len(prs_by_ticket)} PR groups, "
            f"{len(github_data.review_requests)} review requests, "
            f"{len(github_data.reviewed)} reviewed PRs"
        )
        logger.info(
            f"Aggregating {len(tickets)} tickets with {len(prs_by_ticket)} PR groups "
            f"and {len(github_data.review_requests)} review requests"
        )

        # Tickets found via authored PRs but not assigned to the actor
        known = {ticket.key.casefold() for ticket in tickets}
        missing_keys = [key for key in prs_by_ticket if key.casefold() not in known]
        if missing_keys:
            report(f"Fetching {len(missing_keys)} extra tickets found via PRs")
            logger.info(
                f"Fetching {len(missing_keys)} tickets found via PRs but not assigned to me: "
                f"{', '.join(missing_keys)}"
            )
            tickets.extend(await self.jira_client.get_tickets_by_keys(missing_keys))

        assembler = WorkItemAssembler(self.stage_mapper, now=datetime.now(timezone.utc))
        assembler.add_authored(tickets, prs_by_ticket)

        report("Matching review requests to Jira tickets")
        review_groups, orphan_reviews = group_by_ticket(github_data.review_requests)
        review_tickets = await self._lookup(assembler.unclaimed(review_groups))
        assembler.add_review_requests(review_groups, review_tickets)
        assembler.add_orphan_review_requests(orphan_reviews)

        reviewed_groups, orphan_reviewed = group_by_ticket(github_data.reviewed)
        reviewed_tickets = await self._lookup(assembler.unclaimed(reviewed_groups))
        assembler.add_reviewed(reviewed_groups, orphan_reviewed, reviewed_tickets)

        report(f"Built {len(assembler.items)} work items, sorting")
        return assembler.build()

    async def _lookup(self, keys: Iterable[str]) -> Dict[str, Ticket]:
        keys = list(keys)
        if not keys:
            return {}
        found = await self.jira_client.get_tickets_by_keys(keys)
        return {ticket.key: ticket for ticket in found}


def _reporter(progress: Optional[ProgressSink]) -> ProgressSink:
    def report(message: str) -> None:
        logger.debug(message)
        if progress is not None:
            progress(message)

    return report
