"""Kafka cluster resource.

Clusters are addressed by identifier plus environment, so import takes
"<env ID>/<cluster ID>". Only the name can change in place; placement and
sizing changes replace the cluster.
"""

from __future__ import annotations

import logging
import threading
from typing import ClassVar

from .client import Cluster
from .errors import ApiError, CreateError, DeleteError, UpdateError
from .import_key import CLUSTER_IMPORT_FIELDS, parse_import_key
from .models import KafkaClusterSpec
from .reconciler import ResourceData, ResourceReconciler

logger = logging.getLogger(__name__)


def _record(data: ResourceData, cluster: Cluster) -> None:
    data.set("name", cluster.name)
    data.set("bootstrap_servers", cluster.bootstrap_servers)
    if cluster.environment_id:
        data.set("environment_id", cluster.environment_id)
    if cluster.service_provider:
        data.set("service_provider", cluster.service_provider)
    if cluster.region:
        data.set("region", cluster.region)
    if cluster.availability:
        data.set("availability", cluster.availability)
    for sizing in ("storage", "network_ingress", "network_egress", "cku"):
        if getattr(cluster, sizing):
            data.set(sizing, getattr(cluster, sizing))
    # account_id is echoed back from the create request
    deployment = {k: v for k, v in cluster.deployment.items() if k != "account_id"}
    if deployment:
        data.set("deployment", deployment)
    data.set("status", cluster.status)


class KafkaClusterReconciler(ResourceReconciler[KafkaClusterSpec]):
    """Managed Kafka cluster."""

    kind: ClassVar[str] = "kafka_cluster"
    spec_model = KafkaClusterSpec
    force_new = frozenset(
        {
            "environment_id",
            "service_provider",
            "region",
            "availability",
            "storage",
            "network_ingress",
            "network_egress",
            "deployment",
            "cku",
        }
    )

    def create(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        spec: KafkaClusterSpec = self.parse_spec(data.values)

        logger.info(
            "Creating Kafka cluster",
            extra={"cluster_name": spec.name, "environment_id": spec.environment_id},
        )
        try:
            cluster = self.session.client.create_cluster(spec.to_request())
        except ApiError as e:
            raise CreateError(
                self.kind, str(e), name=spec.name, environment_id=spec.environment_id
            ) from e

        data.set_id(cluster.id)
        _record(data, cluster)

    def read(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        cluster_id = self._require_id(data)
        env_id = self._require(data, "environment_id")

        try:
            cluster = self.session.client.get_cluster(cluster_id, env_id)
        except ApiError as e:
            raise self._read_failed(e, cluster_id=cluster_id, environment_id=env_id) from e

        _record(data, cluster)

    def update(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        cluster_id = self._require_id(data)
        spec: KafkaClusterSpec = self.parse_spec(data.values)

        logger.info("Renaming Kafka cluster", extra={"cluster_id": cluster_id})
        try:
            cluster = self.session.client.update_cluster(
                cluster_id, spec.environment_id, spec.name
            )
        except ApiError as e:
            raise UpdateError(
                self.kind, str(e), cluster_id=cluster_id, environment_id=spec.environment_id
            ) from e

        _record(data, cluster)

    def delete(self, data: ResourceData, *, cancel: threading.Event | None = None) -> None:
        cluster_id = self._require_id(data)
        env_id = self._require(data, "environment_id")

        logger.info("Deleting Kafka cluster", extra={"cluster_id": cluster_id})
        try:
            self.session.client.delete_cluster(cluster_id, env_id)
        except ApiError as e:
            raise DeleteError(
                self.kind, str(e), cluster_id=cluster_id, environment_id=env_id
            ) from e

    def import_state(self, key: str) -> ResourceData:
        """Import from '<env ID>/<cluster ID>'."""
        fields = parse_import_key(key, CLUSTER_IMPORT_FIELDS, kind=self.kind)
        return ResourceData(id=fields["id"], values={"environment_id": fields["environment_id"]})
