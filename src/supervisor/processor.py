"""Background processor for stored webhook events.

Polls the event store for unprocessed events and drives each one through:
pending → processing → processed (success or failure).

For trigger events with a resolved project and issue number, the processor
runs verification through the injected VerificationRunner and reports the
result through the injected ResultReporter. Every other event is marked
processed as a no-op.

Each event gets exactly one processing attempt. Verification failures are
recorded on the event as error_message and reporting failures are only
logged; neither stops the queue from draining. The one exception is a
failed mark-processed write, which leaves the event pending so the next
tick sees it again.

At most `concurrency` verification calls run at once: each tick splits the
fetched events into batches of that size and waits for a whole batch before
starting the next.

Source:
- src/supervisor/store/repository.py (EventStore)
- src/supervisor/verification/models.py (VerificationRunner)
- src/supervisor/github/reporter.py (ResultReporter, parse_repo_info)
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import FrozenSet, List, Optional, Set, Union
from uuid import UUID

from supervisor.github.reporter import ResultReporter, parse_repo_info
from supervisor.metrics import WebhookMetrics
from supervisor.store.models import WebhookEvent
from supervisor.store.repository import EventStore
from supervisor.verification.formatting import (
    format_verification_comment,
    labels_for_status,
)
from supervisor.verification.models import (
    VerificationResult,
    VerificationRunner,
    VerificationStatus,
)

logger = logging.getLogger(__name__)


class EventState(str, Enum):
    """Processing state of a single event.

    PROCESSING exists only in memory while an event is being handled;
    the store only knows processed or not.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    SUCCEEDED = "processed_success"
    FAILED = "processed_failure"


@dataclass(frozen=True)
class ProcessingOutcome:
    """Result of one processing attempt.

    Attributes:
        event_id: The processed event.
        state: Terminal state, or PENDING if marking processed failed.
        skipped: True when the event was not a verification trigger.
        error_message: Verification failure recorded on the event.
        verification_status: Status returned by the verifier, if it ran.
        reported: Whether the result was posted to GitHub.
    """

    event_id: UUID
    state: EventState
    skipped: bool = False
    error_message: Optional[str] = None
    verification_status: Optional[VerificationStatus] = None
    reported: bool = False


class EventProcessor:
    """Polls the event store and dispatches verification.

    Attributes:
        store: Event store shared with the receiver.
        verification_runner: External verification collaborator.
        reporter: Result reporting collaborator.
        workspace_base_path: Root of per-project workspaces.
        poll_interval_seconds: Delay between polling ticks.
        fetch_limit: Maximum events fetched per tick.
        concurrency: Maximum verification calls in flight.
        metrics: Optional metrics container.
    """

    def __init__(
        self,
        store: EventStore,
        verification_runner: VerificationRunner,
        reporter: ResultReporter,
        workspace_base_path: Union[str, Path],
        poll_interval_seconds: float = 30.0,
        fetch_limit: int = 10,
        concurrency: int = 3,
        metrics: Optional[WebhookMetrics] = None,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if fetch_limit < 1:
            raise ValueError("fetch_limit must be at least 1")

        self.store = store
        self.verification_runner = verification_runner
        self.reporter = reporter
        self.workspace_base_path = Path(workspace_base_path)
        self.poll_interval_seconds = poll_interval_seconds
        self.fetch_limit = fetch_limit
        self.concurrency = concurrency
        self.metrics = metrics

        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._processing: Set[UUID] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def processing_event_ids(self) -> FrozenSet[UUID]:
        """IDs of events currently in the PROCESSING state."""
        return frozenset(self._processing)

    def start(self) -> None:
        """Start the polling loop on the running event loop.

        Calling start() while the loop is already running does nothing.
        """
        if self.is_running:
            logger.warning("Event processing already running")
            return

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(self._stop_event))
        logger.info(
            "Starting webhook event processor (checking every %.1fs)",
            self.poll_interval_seconds,
        )

    async def stop(self) -> None:
        """Stop the polling loop.

        Wakes the loop if it is sleeping and waits for an in-flight tick
        to finish. The processor can be started again afterwards.
        """
        if self._task is None or self._stop_event is None:
            return

        logger.info("Stopping webhook event processor")
        self._stop_event.set()
        try:
            await self._task
        finally:
            self._task = None
            self._stop_event = None
        logger.info("Webhook event processor stopped")

    async def _run(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await self.tick()
            except Exception:
                logger.exception("Error in event processing loop")

            try:
                await asyncio.wait_for(
                    stop_event.wait(), timeout=self.poll_interval_seconds
                )
            except asyncio.TimeoutError:
                pass

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    async def tick(self) -> List[ProcessingOutcome]:
        """Fetch and process one round of unprocessed events.

        Returns:
            Outcomes in fetch order. Empty if the fetch failed.
        """
        if self.metrics is not None:
            self.metrics.record_tick()

        try:
            events = await self.store.fetch_unprocessed(self.fetch_limit)
        except Exception:
            logger.exception("Failed to fetch unprocessed webhook events")
            return []

        events = [e for e in events if e.id not in self._processing]
        if not events:
            return []

        logger.info("Processing %d webhook events", len(events))

        outcomes: List[ProcessingOutcome] = []
        for start in range(0, len(events), self.concurrency):
            batch = events[start : start + self.concurrency]
            outcomes.extend(
                await asyncio.gather(*(self.process_event(e) for e in batch))
            )
        return outcomes

    async def process_event(self, event: WebhookEvent) -> ProcessingOutcome:
        """Process a single event and mark it processed.

        Never raises; all failures end up in the returned outcome.
        """
        if not self._is_actionable(event):
            logger.debug(
                "Skipping non-trigger webhook event",
                extra={"event_id": str(event.id), "event_type": event.event_type},
            )
            marked = await self._mark_processed(event.id, "skipped")
            return ProcessingOutcome(
                event_id=event.id,
                state=EventState.SUCCEEDED if marked else EventState.PENDING,
                skipped=True,
            )

        logger.info(
            "Processing webhook event %s: %s #%d",
            event.id,
            event.project_name,
            event.issue_number,
        )

        project_name = event.project_name
        issue_number = event.issue_number

        self._processing.add(event.id)
        try:
            result = await self._run_verification(project_name, issue_number)
        except Exception as exc:
            self._processing.discard(event.id)
            error_message = str(exc) or type(exc).__name__
            logger.exception(
                "Verification failed for webhook event",
                extra={
                    "event_id": str(event.id),
                    "project_name": event.project_name,
                    "issue_number": event.issue_number,
                },
            )
            marked = await self._mark_processed(event.id, "failure", error_message)
            return ProcessingOutcome(
                event_id=event.id,
                state=EventState.FAILED if marked else EventState.PENDING,
                error_message=error_message,
            )

        logger.info(
            "Verification completed with status: %s",
            result.status.value,
            extra={"event_id": str(event.id)},
        )

        try:
            reported = await self._report_result(
                event, project_name, issue_number, result
            )
            marked = await self._mark_processed(event.id, "success")
        finally:
            self._processing.discard(event.id)

        return ProcessingOutcome(
            event_id=event.id,
            state=EventState.SUCCEEDED if marked else EventState.PENDING,
            verification_status=result.status,
            reported=reported,
        )

    def _is_actionable(self, event: WebhookEvent) -> bool:
        return (
            event.trigger
            and event.project_name is not None
            and event.issue_number is not None
        )

    def workspace_root(self, project_name: str) -> Path:
        return self.workspace_base_path / project_name

    async def _run_verification(
        self, project_name: str, issue_number: int
    ) -> VerificationResult:
        if self.metrics is not None:
            self.metrics.verifications_in_flight.inc()
        start_time = time.monotonic()
        try:
            return await self.verification_runner.run_verification(
                project_name,
                issue_number,
                self.workspace_root(project_name),
            )
        finally:
            if self.metrics is not None:
                self.metrics.verifications_in_flight.dec()
                self.metrics.record_verification_duration(
                    project_name, time.monotonic() - start_time
                )

    async def _report_result(
        self,
        event: WebhookEvent,
        project_name: str,
        issue_number: int,
        result: VerificationResult,
    ) -> bool:
        """Post the result as a comment and apply the status label.

        The repository comes from the triggering delivery. When that payload
        does not carry one, the newest stored event for the same project
        issue that does is used instead. Failures are logged and reported
        as False.
        """
        try:
            repo_info = parse_repo_info(event.payload)
            if repo_info is None:
                related = await self.store.find_for_issue(project_name, issue_number)
                repo_info = next(
                    (
                        info
                        for info in (parse_repo_info(e.payload) for e in related)
                        if info is not None
                    ),
                    None,
                )
            if repo_info is None:
                logger.warning(
                    "Could not parse repository info from webhook payloads",
                    extra={"event_id": str(event.id)},
                )
                return False

            await self.reporter.post_result(
                repo_info.owner,
                repo_info.repo,
                issue_number,
                format_verification_comment(result),
            )

            labels = labels_for_status(result.status)
            if labels:
                await self.reporter.apply_labels(
                    repo_info.owner, repo_info.repo, issue_number, labels
                )
            return True

        except Exception:
            logger.exception(
                "Error posting verification results",
                extra={"event_id": str(event.id)},
            )
            return False

    async def _mark_processed(
        self, event_id: UUID, result: str, error_message: Optional[str] = None
    ) -> bool:
        """Mark an event processed and count the result.

        Returns:
            True if the event is processed in the store afterwards, False
            if the write failed and the event stays pending. The result is
            only counted when this call changed the row.
        """
        try:
            changed = await self.store.mark_processed(event_id, error_message)
        except Exception:
            logger.exception(
                "Failed to mark webhook event processed; it stays pending",
                extra={"event_id": str(event_id)},
            )
            return False

        if not changed:
            logger.warning(
                "Webhook event was already processed",
                extra={"event_id": str(event_id), "result": result},
            )
        elif self.metrics is not None:
            self.metrics.record_event_processed(result)
        return True
