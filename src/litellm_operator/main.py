"""Main entry point for the LiteLLM Operator."""

from __future__ import annotations

import logging
from typing import Any, Callable

import click
import kopf
from kubernetes import client

from . import health
from . import logging as structured_logging
from .apis import KindRegistry, ProviderConfig, register_kinds
from .builders.provider import create_client_from_provider_config
from .config import OperatorConfig
from .constants import KIND_KEY, KIND_TEAM
from .handlers import (
    KeyExternal,
    ProviderConfigHandler,
    TeamExternal,
    register_managed_watch,
    register_provider_config_handlers,
)
from .handlers.shared import get_core_client, get_k8s_client
from .managed import (
    APISecretPublisher,
    Connector,
    Controller,
    CredentialResolver,
    KubernetesRecordStore,
    ProviderConfigUsageTracker,
    Reconciler,
)
from .managed.interfaces import EventRecorder
from .managed.ratelimiter import BucketRateLimiter
from .services.litellm.client import LiteLLMClient
from .tracing import initialize_tracing
from .utils.events import KopfEventRecorder

logger = logging.getLogger(__name__)

# External client type per managed kind.
EXTERNAL_CLIENTS: dict[str, Callable[[LiteLLMClient], Any]] = {
    KIND_KEY: KeyExternal,
    KIND_TEAM: TeamExternal,
}


class Operator:
    """The wired operator: one controller per managed kind plus the ProviderConfig handler."""

    def __init__(self, config: OperatorConfig, kinds: KindRegistry) -> None:
        self.config = config
        self.kinds = kinds
        self.controllers: dict[str, Controller] = {}
        self.metrics_server: Any = None

    def ready(self) -> bool:
        return bool(self.controllers) and all(c.running for c in self.controllers.values())

    def start(self) -> None:
        for controller in self.controllers.values():
            controller.start()

    def stop(self) -> None:
        for controller in self.controllers.values():
            controller.stop()
        if self.metrics_server is not None:
            self.metrics_server.shutdown()
            self.metrics_server = None


def setup(
    registry: kopf.OperatorRegistry,
    config: OperatorConfig,
    custom_api: client.CustomObjectsApi | None = None,
    core_api: client.CoreV1Api | None = None,
    recorder: EventRecorder | None = None,
) -> Operator:
    """Register kinds, controllers and handlers on ``registry``.

    Args:
        registry: kopf registry to register handlers on
        config: Operator configuration
        custom_api: CustomObjectsApi (created from kubeconfig if omitted)
        core_api: CoreV1Api (created from kubeconfig if omitted)
        recorder: Event recorder (kopf events if omitted)

    Returns:
        The wired operator; its controllers start with the kopf startup hook
    """
    custom_api = custom_api or get_k8s_client()
    core_api = core_api or get_core_client()
    recorder = recorder or KopfEventRecorder()

    kinds = KindRegistry()
    register_kinds(kinds)
    operator = Operator(config, kinds)

    store = KubernetesRecordStore(custom_api)
    usage = ProviderConfigUsageTracker(custom_api)
    resolver = CredentialResolver(core_api)
    publisher = APISecretPublisher(core_api, config.connection_secret_namespace)
    # One bucket for every kind: reconciles are throttled process-wide.
    bucket = BucketRateLimiter(config.max_reconcile_rate, config.reconcile_burst)

    def new_service(pc: ProviderConfig, credentials: bytes) -> LiteLLMClient:
        return create_client_from_provider_config(pc, credentials, timeout=config.request_timeout)

    for kind in kinds.kinds():
        connector = Connector(kind, usage, store, resolver, new_service, EXTERNAL_CLIENTS[kind.kind])
        reconciler = Reconciler(
            kind,
            store,
            connector,
            publisher,
            recorder,
            poll_interval=config.poll_interval,
            creation_grace_period=config.creation_grace_period,
        )
        controller = Controller(
            kind,
            reconciler,
            bucket,
            workers=config.max_concurrent_reconciles,
            reconcile_timeout=config.reconcile_timeout,
            min_retry_delay=config.min_retry_delay,
            max_retry_delay=config.max_retry_delay,
        )
        register_managed_watch(registry, controller)
        operator.controllers[kind.kind] = controller

    pc_handler = ProviderConfigHandler(
        api_getter=lambda: custom_api,
        check_interval=config.provider_config_check_interval,
    )
    register_provider_config_handlers(registry, pc_handler)

    @kopf.on.startup(registry=registry)
    def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
        """Configure the operator and start the controllers."""
        structured_logging.setup_structured_logging(config.log_level)
        initialize_tracing()

        settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
        settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()
        settings.posting.level = logging.WARNING
        settings.networking.request_timeout = config.request_timeout
        settings.execution.max_workers = config.max_concurrent_reconciles

        operator.metrics_server = health.start_metrics_server(config.metrics_port, operator.ready)
        operator.start()
        logger.info(f"Operator started with kinds {[k.kind for k in kinds.kinds()]}")

    @kopf.on.cleanup(registry=registry)
    def shutdown(**_: Any) -> None:
        """Stop the controllers and the metrics server."""
        operator.stop()
        logger.info("Operator stopped")

    return operator


@click.group()
def cli() -> None:
    """LiteLLM Operator."""


@cli.command()
@click.option("--namespace", "-n", multiple=True, help="Watch only these namespaces (default: cluster-wide)")
@click.option("--workers", type=int, default=None, help="Concurrent reconciles per kind")
@click.option("--poll-interval", type=float, default=None, help="Seconds between polls of a synced resource")
@click.option("--metrics-port", type=int, default=None, help="Port for /metrics, /healthz and /readyz")
@click.option("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
def run(
    namespace: tuple[str, ...],
    workers: int | None,
    poll_interval: float | None,
    metrics_port: int | None,
    log_level: str | None,
) -> None:
    """Run the operator until interrupted."""
    config = OperatorConfig.from_env()
    if workers is not None:
        config.max_concurrent_reconciles = workers
    if poll_interval is not None:
        config.poll_interval = poll_interval
    if metrics_port is not None:
        config.metrics_port = metrics_port
    if log_level is not None:
        config.log_level = log_level.upper()
    try:
        config.validate()
    except ValueError as e:
        raise click.BadParameter(str(e)) from e

    structured_logging.setup_structured_logging(config.log_level)
    registry = kopf.OperatorRegistry()
    setup(registry, config)

    kopf.run(
        registry=registry,
        clusterwide=not namespace,
        namespaces=list(namespace),
    )


if __name__ == "__main__":
    cli()
