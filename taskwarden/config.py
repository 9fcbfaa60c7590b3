import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict

import yaml
from pydantic import ConfigDict
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """
    Raised when required credentials or scope settings are missing.
    This is fatal for a refresh cycle and is raised before any network call.
    """

    pass


DEFAULT_STATUS_MAPPINGS: Dict[str, str] = {
    "To Do": "ToDo",
    "Open": "ToDo",
    "Selected for Development": "ToDo",
    "In Analysis": "InAnalysis",
    "In Progress": "InProgress",
    "Code Review": "CodeReview",
    "In Review": "CodeReview",
    "Ready for QA": "ReadyForQa",
    "In QA": "InQa",
    "Ready for Merge": "ReadyForMerge",
    "Blocked": "Blocked",
    "Product Review": "ProductReview",
    "Done": "Done",
    "Closed": "Done",
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    app_name: str = "Taskwarden"
    debug: bool = False
    refresh_interval_minutes: float = 5.0
    refresh_initial_delay_seconds: float = 2.0

    # GitHub
    github_token: str = ""
    github_organization: str = ""
    github_branch_prefix: str = "ac"
    github_branch_loose_match: bool = True  # Also accept KEY-123 anywhere in the branch
    github_direct_review_requests_only: bool = True
    github_merged_lookback_days: int = 7
    github_detail_concurrency: int = 5
    github_timeout_seconds: int = 15

    # Jira
    jira_server: str = ""
    jira_email: str = ""
    jira_api_token: str = ""
    jira_board_name: str = ""
    jira_page_size: int = 50
    jira_timeout_seconds: int = 30
    jira_status_mappings: Dict[str, str] = dict(DEFAULT_STATUS_MAPPINGS)
    jira_status_mappings_file: str = ""

    model_config = ConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()


def load_status_mappings(settings: Settings) -> Dict[str, str]:
    """
    Build the status -> stage dictionary.

    Entries from ``jira_status_mappings_file`` (a flat YAML mapping) override
    the ones configured in ``jira_status_mappings``.
    """
    mappings = dict(settings.jira_status_mappings)
    if not settings.jira_status_mappings_file:
        return mappings

    path = Path(settings.jira_status_mappings_file)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except FileNotFoundError as e:
        raise ConfigurationError(f"Status mapping file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid status mapping file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Status mapping file {path} must contain a mapping of status to stage"
        )

    mappings.update({str(k): str(v) for k, v in data.items()})
    logger.info(f"Loaded {len(data)} status mappings from {path}")
    return mappings
