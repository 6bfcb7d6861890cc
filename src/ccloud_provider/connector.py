"""Connector resource.

Connectors are located by environment, cluster and name, and their
identifier is the name. Create is retried for as long as the cluster side
reports it is still provisioning, bounded by the create timeout. Drift on
the config map is filtered through the diff suppressor because the service
adds derived keys and masks sensitive values on read.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Mapping
from typing import Any, ClassVar

from .backoff import (
    PROVISIONING_RETRY_POLICY,
    RetryCancelledError,
    RetryPolicy,
    RetryTimeoutError,
    retry_with_deadline,
)
from .client import Connector
from .diff_suppress import DEFAULT_SUPPRESSOR, ConfigDifference, DiffSuppressor
from .errors import (
    ApiError,
    CreateError,
    DeleteError,
    TransientProvisioningError,
    UpdateError,
    is_provisioning,
)
from .import_key import CONNECTOR_IMPORT_FIELDS, parse_import_key
from .models import ConnectorSpec
from .reconciler import ResourceData, ResourceReconciler
from .session import Session

logger = logging.getLogger(__name__)

MASK = "****"


def masked_config(spec: ConnectorSpec) -> dict[str, str]:
    """Merged config for error messages, with sensitive values masked."""
    shown = dict(spec.config)
    shown.update({key: MASK for key in spec.config_sensitive})
    return shown


class ConnectorReconciler(ResourceReconciler[ConnectorSpec]):
    """Managed connector inside a Kafka cluster."""

    kind: ClassVar[str] = "connector"
    spec_model = ConnectorSpec
    force_new = frozenset({"name", "environment_id", "cluster_id"})
    diff_excluded = frozenset({"config_sensitive"})

    def __init__(
        self,
        session: Session,
        *,
        create_policy: RetryPolicy = PROVISIONING_RETRY_POLICY,
        suppressor: DiffSuppressor = DEFAULT_SUPPRESSOR,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], bool] | None = None,
    ) -> None:
        """Initialize the connector reconciler.

        Args:
            session: Authenticated session.
            create_policy: Backoff and deadline for provisioning retries.
            suppressor: Rules deciding which config differences are noise.
            clock: Monotonic clock for the retry deadline.
            sleep: Interruptible sleep for retry waits.
        """
        super().__init__(session)
        self._create_policy = create_policy
        self._suppressor = suppressor
        self._clock = clock
        self._sleep = sleep

    def create(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        spec: ConnectorSpec = self.parse_spec(data.values)
        config = spec.merged_config()
        client = self.session.client
        ids = {
            "name": spec.name,
            "environment_id": spec.environment_id,
            "cluster_id": spec.cluster_id,
        }
        log_ctx = {**ids, "connector": spec.name}
        log_ctx.pop("name")

        def attempt() -> Connector:
            try:
                return client.create_connector(
                    spec.environment_id, spec.cluster_id, spec.name, config
                )
            except ApiError as e:
                if is_provisioning(e):
                    raise TransientProvisioningError(
                        f"cluster {spec.cluster_id} is still being provisioned: {e}"
                    ) from e
                raise

        def log_retry(attempt_no: int, wait_seconds: float, error: BaseException) -> None:
            logger.info(
                "Connector target still provisioning, retrying",
                extra={**log_ctx, "attempt": attempt_no, "wait_seconds": wait_seconds},
            )

        logger.debug("Creating connector", extra=log_ctx)
        try:
            retry_with_deadline(
                attempt,
                self._create_policy,
                is_retryable=lambda e: isinstance(e, TransientProvisioningError),
                description=f"create connector {spec.name}",
                cancel=cancel,
                on_retry=log_retry,
                clock=self._clock,
                sleep=self._sleep,
            )
        except RetryTimeoutError as e:
            # Also covers RetryCancelledError
            state = "cancelled" if isinstance(e, RetryCancelledError) else "timed out"
            cause = e.last_error
            raise CreateError(
                self.kind,
                f"{state} waiting for provisioning after {e.attempts} attempt(s); "
                f"config={masked_config(spec)}: {cause}",
                **ids,
            ) from cause
        except ApiError as e:
            logger.error("Connector create failed", extra={**log_ctx, "error": str(e)})
            raise CreateError(self.kind, f"config={masked_config(spec)}: {e}", **ids) from e

        data.set_id(spec.name)
        logger.debug("Created connector", extra=log_ctx)

    def read(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        name = self._require_id(data)
        env_id = self._require(data, "environment_id")
        cluster_id = self._require(data, "cluster_id")

        try:
            connector = self.session.client.get_connector(env_id, cluster_id, name)
        except ApiError as e:
            raise self._read_failed(
                e, name=name, environment_id=env_id, cluster_id=cluster_id
            ) from e

        data.set("config", dict(connector.config))
        data.set("name", connector.name)

    def update(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        spec: ConnectorSpec = self.parse_spec(data.values)
        config = spec.merged_config()
        ids = {
            "name": spec.name,
            "environment_id": spec.environment_id,
            "cluster_id": spec.cluster_id,
        }
        log_ctx = {**ids, "connector": spec.name}
        log_ctx.pop("name")

        logger.debug("Updating connector config", extra=log_ctx)
        try:
            self.session.client.update_connector_config(
                spec.environment_id, spec.cluster_id, spec.name, config
            )
        except ApiError as e:
            logger.error("Connector update failed", extra={**log_ctx, "error": str(e)})
            raise UpdateError(self.kind, f"config={masked_config(spec)}: {e}", **ids) from e
        finally:
            data.set_id(spec.name)

        logger.debug("Updated connector", extra=log_ctx)

    def delete(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        name = data.get("name") or self._require_id(data)
        env_id = self._require(data, "environment_id")
        cluster_id = self._require(data, "cluster_id")

        try:
            self.session.client.delete_connector(env_id, cluster_id, name)
        except ApiError as e:
            raise DeleteError(
                self.kind, str(e), name=name, environment_id=env_id, cluster_id=cluster_id
            ) from e

    def import_state(self, key: str) -> ResourceData:
        """Import from '<env ID>/<cluster ID>/<name>'; the name becomes the identifier."""
        fields = parse_import_key(key, CONNECTOR_IMPORT_FIELDS, kind=self.kind)
        return ResourceData(id=fields["name"], values=fields)

    def diff(self, data: ResourceData, declared: Mapping[str, Any]) -> list[ConfigDifference]:
        """Config drift, ignoring keys that are supplied through config_sensitive."""
        spec: ConnectorSpec = self.parse_spec(declared)
        hidden = {f"config.{key}" for key in spec.config_sensitive}
        return [d for d in super().diff(data, declared) if d.key not in hidden]

    def _diff_field(self, name: str, old: Any, new: Any) -> list[ConfigDifference]:
        if name == "config":
            return self._suppressor.config_differences(old or {}, new or {}, attribute=name)
        return super()._diff_field(name, old, new)
