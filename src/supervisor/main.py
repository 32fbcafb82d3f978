"""FastAPI application entry point for the webhook pipeline.

Wires the receiver, event store and background event processor together
and exposes them over HTTP:
- POST /webhooks/github: authenticated webhook ingestion
- GET /webhooks/events: recent stored events, for inspection
- GET /health, GET /ready: liveness and readiness probes
- GET /metrics: Prometheus exposition
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST

from supervisor.config import SupervisorSettings, get_settings
from supervisor.github.client import GitHubClient
from supervisor.github.reporter import GitHubReporter, ResultReporter
from supervisor.logging_config import configure_logging
from supervisor.metrics import WebhookMetrics, generate_metrics_output, get_metrics
from supervisor.processor import EventProcessor
from supervisor.store.memory import InMemoryEventStore
from supervisor.store.repository import EventStore, PostgresEventStore
from supervisor.verification.models import VerificationRunner
from supervisor.verification.runner import CommandVerificationRunner
from supervisor.webhook.classifier import EventClassifier
from supervisor.webhook.receiver import IngestReceiver
from supervisor.webhook.validator import ConfigurationError, create_signature_validator

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _redact_secret(value: Optional[str], visible_chars: int = 4) -> str:
    """Redact a secret value, showing only the first few characters.

    Args:
        value: The secret value to redact.
        visible_chars: Number of characters to show at the start.

    Returns:
        Redacted string with asterisks replacing hidden characters.
    """
    if not value:
        return "<not set>"
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def _log_configuration(settings: SupervisorSettings) -> None:
    """Log configuration values with secrets redacted."""
    logger.info("Webhook pipeline configuration:")
    logger.info(f"  GitHub Base URL: {settings.github_base_url}")
    logger.info(f"  GitHub Token: {_redact_secret(settings.github_token)}")
    logger.info(
        f"  GitHub Webhook Secret: {_redact_secret(settings.github_webhook_secret)}"
    )
    logger.info(f"  Database URL: {_redact_secret(settings.database_url)}")
    logger.info(f"  Store Timeout Seconds: {settings.store_timeout_seconds}")
    logger.info(f"  Workspace Base Path: {settings.workspace_base_path}")
    logger.info(f"  Verifier Command: {settings.verifier_command}")
    logger.info(f"  Verifier Timeout Seconds: {settings.verifier_timeout_seconds}")
    logger.info(f"  Processor Enabled: {settings.processor_enabled}")
    logger.info(
        f"  Processor Poll Interval: {settings.processor_poll_interval_seconds}s"
    )
    logger.info(f"  Processor Fetch Limit: {settings.processor_fetch_limit}")
    logger.info(f"  Processor Concurrency: {settings.processor_concurrency}")
    logger.info(f"  Mapped Repositories: {len(settings.repository_projects)}")
    logger.info(f"  Host: {settings.host}")
    logger.info(f"  Port: {settings.port}")
    logger.info(f"  Log Format: {settings.log_format}")


async def _open_store(settings: SupervisorSettings) -> EventStore:
    if settings.database_url is None:
        logger.warning(
            "No database URL configured; webhook events are kept in memory "
            "and lost on restart"
        )
        return InMemoryEventStore()

    store = PostgresEventStore(
        settings.database_url,
        min_pool_size=settings.database_min_pool_size,
        max_pool_size=settings.database_max_pool_size,
    )
    await store.connect()
    return store


def create_app(
    settings: Optional[SupervisorSettings] = None,
    *,
    store: Optional[EventStore] = None,
    verification_runner: Optional[VerificationRunner] = None,
    reporter: Optional[ResultReporter] = None,
    metrics: Optional[WebhookMetrics] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Settings are loaded from the environment at startup unless given.
    Any collaborator passed in is used as-is and left open on shutdown;
    collaborators built here are closed by the application.

    Args:
        settings: Optional pre-built settings.
        store: Optional event store; defaults to PostgreSQL or memory.
        verification_runner: Optional verifier; defaults to the command runner.
        reporter: Optional reporter; defaults to GitHubReporter.
        metrics: Optional metrics container; defaults to the global one.

    Returns:
        The configured application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Webhook pipeline starting up...")

        cfg = settings or get_settings()
        configure_logging(cfg.log_level, cfg.log_format)
        _log_configuration(cfg)

        pipeline_metrics = metrics or get_metrics()

        owned_store = None
        event_store = store
        if event_store is None:
            event_store = owned_store = await _open_store(cfg)

        try:
            validator = create_signature_validator(cfg.github_webhook_secret)
        except ConfigurationError as e:
            logger.error("Webhook receiver not configured: %s", e)
            validator = None

        receiver = IngestReceiver(
            validator=validator,
            classifier=EventClassifier(
                repository_projects=cfg.repository_projects,
                automation_identities=cfg.automation_identities,
            ),
            store=event_store,
            metrics=pipeline_metrics,
            store_timeout_seconds=cfg.store_timeout_seconds,
        )

        github_client = None
        result_reporter = reporter
        if result_reporter is None:
            github_client = GitHubClient(
                token=cfg.github_token,
                base_url=cfg.github_base_url,
            )
            result_reporter = GitHubReporter(github_client)

        runner = verification_runner or CommandVerificationRunner(
            command=cfg.verifier_command,
            timeout_seconds=cfg.verifier_timeout_seconds,
        )

        processor = EventProcessor(
            store=event_store,
            verification_runner=runner,
            reporter=result_reporter,
            workspace_base_path=cfg.workspace_base_path,
            poll_interval_seconds=cfg.processor_poll_interval_seconds,
            fetch_limit=cfg.processor_fetch_limit,
            concurrency=cfg.processor_concurrency,
            metrics=pipeline_metrics,
        )

        app.state.settings = cfg
        app.state.store = event_store
        app.state.receiver = receiver
        app.state.processor = processor
        app.state.metrics = pipeline_metrics

        if cfg.processor_enabled:
            processor.start()
        else:
            logger.info("Webhook event processor disabled")

        logger.info("Webhook pipeline started successfully")

        try:
            yield
        finally:
            logger.info("Webhook pipeline shutting down...")
            await processor.stop()
            if github_client is not None:
                await github_client.close()
            if isinstance(owned_store, PostgresEventStore):
                await owned_store.disconnect()
            logger.info("Webhook pipeline shutdown complete")

    app = FastAPI(
        title="Supervisor Webhook Pipeline",
        description="GitHub webhook ingestion and verification triggering",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.get("/health")
    async def health():
        """Liveness probe endpoint.

        Returns 200 OK whenever the process is serving requests.
        """
        return {"status": "healthy"}

    @app.get("/ready")
    async def ready(request: Request):
        """Readiness probe endpoint.

        Ready when the event store answers and the receiver has a webhook
        secret. Returns 503 otherwise.
        """
        receiver: IngestReceiver = request.app.state.receiver
        database_healthy = await request.app.state.store.health_check()

        is_ready = database_healthy and receiver.configured
        body = {
            "status": "ready" if is_ready else "not_ready",
            "dependencies": {
                "database": "healthy" if database_healthy else "unhealthy",
                "webhook_secret": (
                    "configured" if receiver.configured else "missing"
                ),
            },
        }
        return JSONResponse(status_code=200 if is_ready else 503, content=body)

    @app.get("/metrics")
    async def metrics_endpoint(request: Request):
        """Prometheus metrics endpoint."""
        output = generate_metrics_output(request.app.state.metrics.registry)
        return PlainTextResponse(content=output, media_type=CONTENT_TYPE_LATEST)

    @app.post("/webhooks/github")
    async def github_webhook(request: Request):
        """GitHub webhook receiver endpoint.

        The signature is computed over the exact request body, so the body
        is read raw and never re-serialized before validation.
        """
        raw_body = await request.body()
        result = await request.app.state.receiver.receive(request.headers, raw_body)
        return JSONResponse(status_code=result.status_code, content=result.body)

    @app.get("/webhooks/events")
    async def list_events(
        request: Request,
        limit: int = Query(50, ge=1, le=500),
        processed: Optional[bool] = None,
    ):
        """List the most recent stored events without payload bodies."""
        events = await request.app.state.store.list_recent(
            limit=limit, processed=processed
        )
        return {"events": [event.summary() for event in events]}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    dev_settings = get_settings()
    uvicorn.run(
        "supervisor.main:app",
        host=dev_settings.host,
        port=dev_settings.port,
    )
