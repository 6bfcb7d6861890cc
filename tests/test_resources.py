"""Tests for the cluster, API key, schema registry and service account reconcilers."""

import logging

import pytest

from ccloud_mock import MockApiKeys, MockControlPlane
from ccloud_provider.api_key import ApiKeyReconciler
from ccloud_provider.client import ServiceAccount
from ccloud_provider.cluster import KafkaClusterReconciler
from ccloud_provider.errors import (
    ApiError,
    CreateError,
    ImportFormatError,
    InvalidResourceError,
    NotFoundError,
    UpdateError,
)
from ccloud_provider.reconciler import ResourceData
from ccloud_provider.schema_registry import SchemaRegistryReconciler
from ccloud_provider.service_account import ServiceAccountDataSource, ServiceAccountReconciler
from ccloud_provider.session import Session

CLUSTER = {
    "name": "orders",
    "environment_id": "env-1",
    "service_provider": "AWS",
    "region": "us-west-2",
    "availability": "low",
}


class TestKafkaCluster:
    """Tests for KafkaClusterReconciler."""

    def test_create_records_bootstrap_servers(
        self, session: Session, control_plane: MockControlPlane
    ) -> None:
        """Test create assigns the identifier and strips the endpoint scheme."""
        reconciler = KafkaClusterReconciler(session)
        data = ResourceData(values=dict(CLUSTER))

        reconciler.create(data)

        assert data.id in control_plane.clusters
        assert data.get("bootstrap_servers") == f"{data.id}.us-west-2.example.cloud:9092"
        request = control_plane.calls[-1][1][0]
        assert request.service_provider == "aws"
        assert request.availability == "LOW"

    def test_round_trip_has_no_drift(self, session: Session) -> None:
        """Test read after create matches the declaration."""
        reconciler = KafkaClusterReconciler(session)
        data = ResourceData(values=dict(CLUSTER))
        reconciler.create(data)

        reconciler.read(data)

        assert reconciler.diff(data, CLUSTER) == []

    def test_rename_in_place(self, session: Session, control_plane: MockControlPlane) -> None:
        reconciler = KafkaClusterReconciler(session)
        data = ResourceData(values=dict(CLUSTER))
        reconciler.create(data)

        differences = reconciler.diff(data, {**CLUSTER, "name": "orders-v2"})
        assert not reconciler.requires_replacement(differences)

        data.set("name", "orders-v2")
        reconciler.update(data)
        assert control_plane.clusters[data.id].name == "orders-v2"

    def test_region_change_requires_replacement(self, session: Session) -> None:
        reconciler = KafkaClusterReconciler(session)
        data = ResourceData(values=dict(CLUSTER))
        reconciler.create(data)

        differences = reconciler.diff(data, {**CLUSTER, "region": "eu-west-1"})

        assert reconciler.requires_replacement(differences)

    def test_invalid_provider(self, session: Session) -> None:
        with pytest.raises(InvalidResourceError, match="service_provider"):
            KafkaClusterReconciler(session).create(
                ResourceData(values={**CLUSTER, "service_provider": "oracle"})
            )

    def test_import(self, session: Session, control_plane: MockControlPlane) -> None:
        """Test import by '<env ID>/<cluster ID>' then read."""
        reconciler = KafkaClusterReconciler(session)
        created = ResourceData(values=dict(CLUSTER))
        reconciler.create(created)

        data = reconciler.import_state(f"env-1/{created.id}")
        reconciler.read(data)

        assert data.id == created.id
        assert data.get("name") == "orders"

    def test_import_bad_key(self, session: Session) -> None:
        with pytest.raises(ImportFormatError, match="<env ID>/<ID>"):
            KafkaClusterReconciler(session).import_state("lkc-1")

    def test_import_round_trip_with_sizing(self, session: Session) -> None:
        """Test an imported dedicated cluster matches its own declaration."""
        declared = {**CLUSTER, "cku": 2, "deployment": {"sku": "DEDICATED"}}
        reconciler = KafkaClusterReconciler(session)
        created = ResourceData(values=dict(declared))
        reconciler.create(created)

        data = reconciler.import_state(f"env-1/{created.id}")
        reconciler.read(data)
        differences = reconciler.diff(data, declared)

        assert differences == []
        assert not reconciler.requires_replacement(differences)
        assert data.get("cku") == 2
        assert data.get("deployment") == {"sku": "DEDICATED"}

    @pytest.mark.parametrize("operation", ["read", "delete"])
    def test_missing_environment_rejected(
        self, session: Session, control_plane: MockControlPlane, operation: str
    ) -> None:
        """Test state without an environment is not sent to the API."""
        reconciler = KafkaClusterReconciler(session)

        with pytest.raises(InvalidResourceError, match="environment_id"):
            getattr(reconciler, operation)(ResourceData(id="lkc-1"))
        assert control_plane.calls == []

    def test_read_deleted(self, session: Session) -> None:
        reconciler = KafkaClusterReconciler(session)
        data = ResourceData(values=dict(CLUSTER))
        reconciler.create(data)
        reconciler.delete(data)

        with pytest.raises(NotFoundError):
            reconciler.read(data)


class TestApiKey:
    """Tests for ApiKeyReconciler."""

    def test_create_records_secret(self, session: Session, api_keys: MockApiKeys) -> None:
        """Test the secret from the create response is kept in state."""
        reconciler = ApiKeyReconciler(session)
        data = ResourceData(values={"owner_id": "sa-1", "cluster_id": "lkc-1"})

        reconciler.create(data)

        assert data.id == "KEY0001"
        assert data.get("key") == "KEY0001"
        assert data.get("secret") == "secret-1"

    def test_read_keeps_secret(self, session: Session) -> None:
        """Test read does not wipe the secret it cannot see."""
        reconciler = ApiKeyReconciler(session)
        data = ResourceData(values={"owner_id": "sa-1", "description": "ci"})
        reconciler.create(data)

        reconciler.read(data)

        assert data.get("secret") == "secret-1"
        assert data.get("description") == "ci"
        assert reconciler.diff(data, {"owner_id": "sa-1", "description": "ci"}) == []

    def test_update_description(self, session: Session, api_keys: MockApiKeys) -> None:
        reconciler = ApiKeyReconciler(session)
        data = ResourceData(values={"owner_id": "sa-1"})
        reconciler.create(data)

        data.set("description", "rotated")
        reconciler.update(data)

        assert api_keys.keys[data.id].description == "rotated"

    def test_create_failure(self, session: Session, api_keys: MockApiKeys) -> None:
        api_keys.fail_next("create_api_key", ApiError("owner not allowed", status_code=403))

        with pytest.raises(CreateError, match="owner_id=sa-1"):
            ApiKeyReconciler(session).create(ResourceData(values={"owner_id": "sa-1"}))

    def test_read_deleted(self, session: Session) -> None:
        reconciler = ApiKeyReconciler(session)
        data = ResourceData(values={"owner_id": "sa-1"})
        reconciler.create(data)
        reconciler.delete(data)

        with pytest.raises(NotFoundError):
            reconciler.read(data)


class TestSchemaRegistry:
    """Tests for SchemaRegistryReconciler."""

    DECLARED = {"environment_id": "env-1", "service_provider": "gcp", "region": "us"}

    def test_create_and_read(self, session: Session) -> None:
        reconciler = SchemaRegistryReconciler(session)
        data = ResourceData(values=dict(self.DECLARED))

        reconciler.create(data)
        endpoint = data.get("endpoint")
        reconciler.read(data)

        assert data.id.startswith("lsrc-")
        assert data.get("endpoint") == endpoint
        assert reconciler.diff(data, self.DECLARED) == []

    def test_update_not_supported(self, session: Session) -> None:
        with pytest.raises(UpdateError, match="cannot be updated"):
            SchemaRegistryReconciler(session).update(ResourceData(id="lsrc-1"))

    def test_delete_only_warns(
        self,
        session: Session,
        control_plane: MockControlPlane,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test delete leaves the remote registry in place."""
        reconciler = SchemaRegistryReconciler(session)
        data = ResourceData(values=dict(self.DECLARED))
        reconciler.create(data)

        with caplog.at_level(logging.WARNING, logger="ccloud_provider.schema_registry"):
            reconciler.delete(data)

        assert "env-1" in control_plane.schema_registries
        assert any("removing from state only" in r.getMessage() for r in caplog.records)

    def test_read_missing(self, session: Session) -> None:
        data = ResourceData(id="lsrc-1", values={"environment_id": "env-1"})

        with pytest.raises(NotFoundError):
            SchemaRegistryReconciler(session).read(data)

    def test_read_missing_environment(
        self, session: Session, control_plane: MockControlPlane
    ) -> None:
        with pytest.raises(InvalidResourceError, match="environment_id"):
            SchemaRegistryReconciler(session).read(ResourceData(id="lsrc-1"))
        assert control_plane.calls == []

    def test_import(self, session: Session) -> None:
        data = SchemaRegistryReconciler(session).import_state("env-1/lsrc-1")

        assert data.id == "lsrc-1"
        assert data.get("environment_id") == "env-1"


class TestServiceAccount:
    """Tests for ServiceAccountReconciler and its data source."""

    def test_create_read_delete(self, session: Session, control_plane: MockControlPlane) -> None:
        reconciler = ServiceAccountReconciler(session)
        data = ResourceData(values={"name": "ci", "description": "CI pipeline"})

        reconciler.create(data)
        assert data.id.isdigit()

        data.values.clear()
        reconciler.read(data)
        assert data.get("name") == "ci"
        assert data.get("description") == "CI pipeline"

        reconciler.delete(data)
        assert control_plane.service_accounts == {}
        with pytest.raises(NotFoundError):
            reconciler.read(data)

    def test_non_numeric_identifier(self, session: Session) -> None:
        with pytest.raises(InvalidResourceError, match="numeric"):
            ServiceAccountReconciler(session).read(ResourceData(id="sa-abc"))

    def test_changes_require_replacement(self, session: Session) -> None:
        reconciler = ServiceAccountReconciler(session)
        data = ResourceData(values={"name": "ci", "description": "CI pipeline"})
        reconciler.create(data)

        differences = reconciler.diff(data, {"name": "ci", "description": "Deploys"})

        assert reconciler.requires_replacement(differences)
        with pytest.raises(UpdateError):
            reconciler.update(data)

    def test_name_length_limit(self, session: Session) -> None:
        with pytest.raises(InvalidResourceError):
            ServiceAccountReconciler(session).create(
                ResourceData(values={"name": "x" * 65, "description": "too long"})
            )

    def test_lookup_by_name(self, session: Session, control_plane: MockControlPlane) -> None:
        control_plane.service_accounts = {
            7: ServiceAccount(id=7, name="ci", description="CI pipeline"),
        }

        data = ServiceAccountDataSource(session).read("ci")

        assert data.id == "7"
        assert data.get("description") == "CI pipeline"

    def test_lookup_missing(self, session: Session) -> None:
        with pytest.raises(NotFoundError, match="no service account named"):
            ServiceAccountDataSource(session).read("nobody")
