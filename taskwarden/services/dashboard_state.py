"""
In-memory dashboard state.

Holds the latest snapshot served to the UI. A failed refresh keeps the
previous work items and only records the error.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from taskwarden.models.ticket import SprintInfo
from taskwarden.models.work_item import DashboardSnapshot, WorkItem

logger = logging.getLogger(__name__)

Listener = Callable[[DashboardSnapshot], None]


class DashboardState:
    def __init__(self):
        self._lock = threading.Lock()
        self._snapshot = DashboardSnapshot()
        self._listeners: List[Listener] = []

    @property
    def snapshot(self) -> DashboardSnapshot:
        with self._lock:
            return self._snapshot

    def subscribe(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def set_loading(self) -> None:
        self._update(is_loading=True, error=None)

    def set_data(self, work_items: Sequence[WorkItem]) -> None:
        self._update(
            work_items=list(work_items),
            last_refreshed=datetime.now(timezone.utc),
            is_loading=False,
            error=None,
        )

    def set_user_info(
        self,
        github_login: Optional[str],
        jira_display_name: Optional[str],
        active_sprint: Optional[SprintInfo] = None,
    ) -> None:
        self._update(
            github_login=github_login,
            jira_display_name=jira_display_name,
            active_sprint=active_sprint,
        )

    def set_error(self, error: str) -> None:
        self._update(is_loading=False, error=error)

    def set_idle(self) -> None:
        self._update(is_loading=False)

    def _update(self, **changes) -> None:
        with self._lock:
            self._snapshot = self._snapshot.model_copy(update=changes)
            snapshot = self._snapshot
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(snapshot)
            except Exception as e:
                logger.warning(f"Dashboard listener failed: {e}")
