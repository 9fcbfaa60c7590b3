"""
Jira API Client

Responsibilities:
- Tickets assigned to the current user (REST v3 enhanced search pagination)
- Tickets by explicit key set
- Current user display name and active sprint of the configured board
- Sprint custom field discovery

The jira library is blocking, so every call is pushed to a worker thread.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from jira import JIRA, JIRAError

from taskwarden.config import ConfigurationError, Settings, get_settings
from taskwarden.models.ticket import SprintInfo, Ticket

logger = logging.getLogger(__name__)

MY_TICKETS_JQL = (
    "assignee = currentUser() AND (statusCategory != Done OR "
    "(status changed TO Done AFTER -7d)) ORDER BY updated DESC"
)
BASE_FIELDS = ["summary", "status", "issuetype", "priority", "project", "updated", "labels"]

_NOT_DISCOVERED = object()


def parse_jira_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse Jira timestamps such as ``2024-05-02T10:15:30.000+0000``."""
    if not value:
        return None
    for fmt in ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z"):
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Unparseable Jira timestamp: {value}")
        return None


def parse_sprint(value: Any) -> Tuple[Optional[str], Optional[str]]:
    """
    Pick the relevant sprint from a sprint field value.

    The field holds either a single sprint object or a list of them. For
    lists, an active sprint wins, then a future one, then the last entry.

    Returns:
        Tuple of (sprint name, sprint state)
    """
    if not value:
        return None, None

    if isinstance(value, dict):
        return value.get("name"), value.get("state")

    if isinstance(value, list):
        sprints = [s for s in value if isinstance(s, dict)]
        for wanted in ("active", "future"):
            for sprint in sprints:
                if sprint.get("state") == wanted:
                    return sprint.get("name"), wanted
        if sprints:
            return sprints[-1].get("name"), sprints[-1].get("state")

    return None, None


def _name_of(field: Any) -> Optional[str]:
    return field.get("name") if isinstance(field, dict) else None


class JiraClient:
    """Jira API client wrapper."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[JIRA] = None):
        self.settings = settings or get_settings()
        self.server = self.settings.jira_server.rstrip("/")
        self._client = client
        self._sprint_field_id: Any = _NOT_DISCOVERED
        self._board_id: Optional[int] = None

    @property
    def client(self) -> JIRA:
        if self._client is None:
            self.check_configuration()
            self._client = JIRA(
                server=self.server,
                basic_auth=(self.settings.jira_email, self.settings.jira_api_token),
                options={"rest_api_version": "3"},
                timeout=self.settings.jira_timeout_seconds,
                get_server_info=False,
            )
        return self._client

    def check_configuration(self) -> None:
        if not (
            self.settings.jira_server.strip()
            and self.settings.jira_email.strip()
            and self.settings.jira_api_token.strip()
        ):
            raise ConfigurationError(
                "Jira configuration is incomplete. Set JIRA_SERVER, JIRA_EMAIL and JIRA_API_TOKEN."
            )

    # Public API

    async def get_my_tickets(self) -> List[Ticket]:
        """Tickets assigned to the current user, open or done in the last 7 days."""
        self.check_configuration()
        issues = await asyncio.to_thread(self._search, MY_TICKETS_JQL)
        tickets = [self.parse_ticket(issue) for issue in issues]
        logger.info(f"Fetched {len(tickets)} Jira tickets")
        return tickets

    async def get_tickets_by_keys(self, keys: Iterable[str]) -> List[Ticket]:
        """Tickets for an explicit key set. No request is made for an empty set."""
        keys = list(dict.fromkeys(k.upper() for k in keys))
        if not keys:
            return []

        self.check_configuration()
        jql = f"key in ({', '.join(keys)}) ORDER BY updated DESC"
        issues = await asyncio.to_thread(self._search, jql, len(keys))
        tickets = [self.parse_ticket(issue) for issue in issues]
        logger.info(f"Fetched {len(tickets)} tickets by key")
        return tickets

    async def get_current_user_display_name(self) -> str:
        myself = await asyncio.to_thread(self.client.myself)
        name = myself.get("displayName") if isinstance(myself, dict) else None
        return name or self.settings.jira_email

    async def get_active_sprint(self) -> Optional[SprintInfo]:
        """Active sprint of ``jira_board_name``; None when unset or on failure."""
        if not self.settings.jira_board_name:
            return None

        try:
            return await asyncio.to_thread(self._active_sprint)
        except (JIRAError, KeyError, ValueError) as e:
            logger.warning(
                f"Failed to fetch active sprint for board '{self.settings.jira_board_name}': {e}"
            )
            return None

    # Parsing

    def parse_ticket(self, issue: Dict[str, Any]) -> Ticket:
        fields = issue.get("fields") or {}
        key = issue["key"]
        status = fields.get("status") or {}
        category = status.get("statusCategory") or {}

        sprint_name, sprint_state = None, None
        if self._sprint_field_id not in (_NOT_DISCOVERED, None):
            sprint_name, sprint_state = parse_sprint(fields.get(self._sprint_field_id))

        project = fields.get("project") or {}
        return Ticket(
            key=key,
            summary=fields.get("summary") or "",
            status_name=status.get("name") or "Unknown",
            status_category_key=category.get("key"),
            issue_type_name=_name_of(fields.get("issuetype")),
            priority_name=_name_of(fields.get("priority")),
            project_key=project.get("key"),
            browse_url=f"{self.server}/browse/{key}",
            updated_at=parse_jira_datetime(fields.get("updated")),
            labels=list(fields.get("labels") or []),
            sprint_name=sprint_name,
            sprint_state=sprint_state,
        )

    # Blocking helpers (run in worker threads)

    def _requested_fields(self) -> List[str]:
        fields = list(BASE_FIELDS)
        sprint_field = self._discover_sprint_field()
        if sprint_field:
            fields.append(sprint_field)
        return fields

    def _discover_sprint_field(self) -> Optional[str]:
        if self._sprint_field_id is not _NOT_DISCOVERED:
            return self._sprint_field_id

        try:
            for field in self.client.fields():
                clause_names = [str(c).lower() for c in field.get("clauseNames") or []]
                if field.get("id") and "sprint" in clause_names:
                    logger.info(f"Discovered sprint field: {field['id']} ({field.get('name')})")
                    self._sprint_field_id = field["id"]
                    return self._sprint_field_id
            logger.warning("Could not find sprint field in Jira field metadata")
        except JIRAError as e:
            logger.warning(f"Failed to discover sprint field, sprint data will be unavailable: {e}")

        self._sprint_field_id = None
        return None

    def _search(self, jql: str, max_results: Optional[int] = None) -> List[Dict[str, Any]]:
        session = getattr(self.client, "_session", None)
        if session is None:
            raise RuntimeError("JIRA session unavailable")

        url = f"{self.server}/rest/api/3/search/jql"
        params = {
            "jql": jql,
            "maxResults": max_results or self.settings.jira_page_size,
            "fields": ",".join(self._requested_fields()),
        }

        out: List[Dict[str, Any]] = []
        token = None
        while True:
            qp = dict(params)
            if token:
                qp["nextPageToken"] = token
            resp = session.get(url, params=qp)
            resp.raise_for_status()
            data = resp.json()
            out.extend(data.get("issues", []))
            token = data.get("nextPageToken")
            if not token or data.get("isLast") is True:
                break
        return out

    def _active_sprint(self) -> Optional[SprintInfo]:
        if self._board_id is None:
            self._board_id = self._resolve_board_id()
            if self._board_id is None:
                return None

        sprints = self.client.sprints(self._board_id, state="active")
        if not sprints:
            return None

        sprint = sprints[0]
        raw = getattr(sprint, "raw", None) or {}
        return SprintInfo(
            name=sprint.name,
            start_date=parse_jira_datetime(raw.get("startDate")),
            end_date=parse_jira_datetime(raw.get("endDate")),
        )

    def _resolve_board_id(self) -> Optional[int]:
        board_name = self.settings.jira_board_name
        boards = self.client.boards(name=board_name)
        if not boards:
            logger.warning(f"No board found with name '{board_name}'")
            return None

        # The API does a "contains" search, prefer an exact match
        for board in boards:
            if board.name.casefold() == board_name.casefold():
                return board.id
        return boards[0].id
