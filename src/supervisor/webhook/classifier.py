"""Delivery classification.

Maps a projected delivery to the project it belongs to, the issue or pull
request it refers to, and whether it should trigger verification.

The trigger policy is conservative: only `issue_comment` deliveries written
by an automation identity and announcing completed work trigger
verification. Human comments and every other event type are stored but
never trigger anything.
"""

import logging
from typing import Any, Iterable, Mapping, Optional, Tuple, Union

from supervisor.config import (
    DEFAULT_AUTOMATION_IDENTITIES,
    DEFAULT_REPOSITORY_PROJECTS,
)
from supervisor.webhook.models import Classification, DeliveryProjection

logger = logging.getLogger(__name__)


COMMENT_EVENT_TYPE = "issue_comment"

COMPLETION_PHRASES: Tuple[str, ...] = (
    "implementation complete",
    "pr created",
    "pull request created",
    "✅ implementation complete",
    "work completed",
)


class EventClassifier:
    """Classifies webhook deliveries.

    Attributes:
        repository_projects: Repository name to project name mapping.
        automation_identities: Comment authors allowed to trigger verification.
        completion_phrases: Lowercase phrases that mark work as complete.
    """

    def __init__(
        self,
        repository_projects: Optional[Mapping[str, str]] = None,
        automation_identities: Optional[Iterable[str]] = None,
        completion_phrases: Iterable[str] = COMPLETION_PHRASES,
    ) -> None:
        self.repository_projects = dict(
            DEFAULT_REPOSITORY_PROJECTS
            if repository_projects is None
            else repository_projects
        )
        self.automation_identities = frozenset(
            DEFAULT_AUTOMATION_IDENTITIES
            if automation_identities is None
            else automation_identities
        )
        self.completion_phrases = tuple(p.lower() for p in completion_phrases)

    def classify(
        self,
        event_type: str,
        payload: Union[DeliveryProjection, Mapping[str, Any]],
    ) -> Classification:
        """Classify a delivery.

        Args:
            event_type: The X-GitHub-Event header value.
            payload: The decoded payload, or an already projected one.

        Returns:
            Classification with project, issue number and trigger decision.

        Raises:
            MalformedPayloadError: If a raw payload cannot be projected.
        """
        if isinstance(payload, DeliveryProjection):
            delivery = payload
        else:
            delivery = DeliveryProjection.from_payload(payload)

        project_name = self.resolve_project(delivery.repository_name)
        issue_number = delivery.work_item_number
        trigger = self.should_trigger(event_type, delivery)

        if delivery.repository_name and project_name is None:
            logger.info(
                "No project mapped for repository",
                extra={"repository": delivery.repository_name},
            )

        return Classification(
            project_name=project_name,
            issue_number=issue_number,
            trigger=trigger,
        )

    def resolve_project(self, repository_name: Optional[str]) -> Optional[str]:
        if not repository_name:
            return None
        return self.repository_projects.get(repository_name)

    def should_trigger(
        self, event_type: str, delivery: DeliveryProjection
    ) -> bool:
        """Decide whether a delivery announces completed automated work."""
        if event_type != COMMENT_EVENT_TYPE:
            return False

        if delivery.comment_author not in self.automation_identities:
            return False

        body = delivery.comment_body.lower()
        return any(phrase in body for phrase in self.completion_phrases)
