# Jira integration module
from taskwarden.integrations.jira.client import JiraClient, parse_jira_datetime, parse_sprint

__all__ = ["JiraClient", "parse_jira_datetime", "parse_sprint"]
