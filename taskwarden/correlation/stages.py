"""
Status -> Workflow Stage Mapping

Maps raw Jira status names onto the canonical WorkflowStage using the
configured dictionary. Unmapped statuses degrade to UNKNOWN.
"""

import logging
import re
from typing import Dict, Mapping, Optional

from taskwarden.models.work_item import WorkflowStage

logger = logging.getLogger(__name__)


def _normalize(name: str) -> str:
    return re.sub(r"[\s_\-]", "", name).lower()


_STAGES_BY_NAME: Dict[str, WorkflowStage] = {}
for _stage in WorkflowStage:
    _STAGES_BY_NAME[_normalize(_stage.value)] = _stage
    _STAGES_BY_NAME[_normalize(_stage.name)] = _stage


def parse_stage(value: Optional[str]) -> Optional[WorkflowStage]:
    """Parse "CodeReview", "code_review" or "Code Review"; None when unknown."""
    if not value:
        return None
    return _STAGES_BY_NAME.get(_normalize(value))


class StageMapper:
    """Pure, total mapper from status name to stage."""

    def __init__(self, mappings: Mapping[str, str]):
        self.mappings = dict(mappings)
        self._folded = {}
        for status, stage in self.mappings.items():
            # First configured entry wins on case-insensitive collisions
            self._folded.setdefault(status.casefold(), stage)

    def map(self, status_name: Optional[str]) -> WorkflowStage:
        status_name = status_name or ""

        mapped = self.mappings.get(status_name)
        stage = parse_stage(mapped)
        if stage is not None:
            return stage

        mapped = self._folded.get(status_name.casefold())
        stage = parse_stage(mapped)
        if stage is not None:
            return stage

        if mapped:
            logger.warning(
                f"Jira status '{status_name}' maps to unknown stage '{mapped}', mapping to Unknown"
            )
        else:
            logger.warning(f"Unknown Jira status '{status_name}', mapping to Unknown")
        return WorkflowStage.UNKNOWN
