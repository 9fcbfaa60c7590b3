"""
Background Refresh Service

Rebuilds the worklist every ``refresh_interval_minutes`` or on demand, and
publishes the result to the dashboard state.
"""

import asyncio
import logging
from typing import Callable, Optional

from taskwarden.config import Settings, get_settings
from taskwarden.integrations.github.client import GitHubClient
from taskwarden.integrations.github.fetcher import PullRequestFetcher
from taskwarden.integrations.jira.client import JiraClient
from taskwarden.services.aggregator import WorkItemAggregator
from taskwarden.services.dashboard_state import DashboardState

logger = logging.getLogger(__name__)


class RefreshService:
    """Periodic refresh loop with a manual trigger."""

    def __init__(
        self,
        state: DashboardState,
        aggregator_factory: Optional[Callable[[], WorkItemAggregator]] = None,
        github_client: Optional[GitHubClient] = None,
        jira_client: Optional[JiraClient] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.state = state
        self.github_client = github_client
        self.jira_client = jira_client
        self.aggregator_factory = aggregator_factory or self._default_aggregator
        self._manual_refresh = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._user_info_fetched = False

    def _ensure_clients(self) -> None:
        if self.github_client is None:
            self.github_client = GitHubClient(self.settings)
        if self.jira_client is None:
            self.jira_client = JiraClient(self.settings)

    def _default_aggregator(self) -> WorkItemAggregator:
        self._ensure_clients()
        return WorkItemAggregator(
            jira_client=self.jira_client,
            pr_fetcher=PullRequestFetcher(self.github_client, settings=self.settings),
            settings=self.settings,
        )

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="worklist-refresh")
            logger.info("Refresh service started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Refresh service stopped")

    def request_manual_refresh(self) -> None:
        logger.info("Manual refresh requested")
        self._manual_refresh.set()

    async def run(self) -> None:
        await asyncio.sleep(self.settings.refresh_initial_delay_seconds)

        interval = self.settings.refresh_interval_minutes * 60
        while True:
            self._manual_refresh.clear()
            await self.refresh()

            # Wait for the interval to elapse or a manual refresh
            try:
                await asyncio.wait_for(self._manual_refresh.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    async def refresh(self) -> None:
        """
        Run one cycle. Failures are recorded on the dashboard state and the
        previous worklist is kept; cancellation propagates and is not an error.
        """
        logger.info("Starting dashboard refresh")
        self.state.set_loading()

        try:
            if not self._user_info_fetched:
                await self._fetch_user_info()

            aggregator = self.aggregator_factory()
            work_items = await aggregator.aggregate(progress=logger.debug)
            self.state.set_data(work_items)
            logger.info(f"Dashboard refresh complete: {len(work_items)} work items")

        except asyncio.CancelledError:
            self.state.set_idle()
            raise
        except Exception as e:
            logger.error(f"Dashboard refresh failed: {e}", exc_info=True)
            self.state.set_error(str(e))

    async def _fetch_user_info(self) -> None:
        if not (self.settings.github_token and self.settings.jira_api_token):
            return

        try:
            self._ensure_clients()
            github_login = await self.github_client.get_current_login()
            jira_name = await self.jira_client.get_current_user_display_name()
            active_sprint = await self.jira_client.get_active_sprint()
            self.state.set_user_info(github_login, jira_name, active_sprint)
            self._user_info_fetched = True
        except Exception as e:
            logger.warning(f"Failed to fetch user info: {e}")
