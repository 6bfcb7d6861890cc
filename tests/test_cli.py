"""Tests for the ccloud CLI."""

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner, Result

from ccloud_mock import MockApiKeys, MockControlPlane
from ccloud_provider.cli import cli
from ccloud_provider.client import Environment
from ccloud_provider.config import ProviderConfig
from ccloud_provider.errors import ApiError
from ccloud_provider.provider import Provider


@pytest.fixture(autouse=True)
def no_logging_setup() -> Iterator[None]:
    with patch("ccloud_provider.cli.setup_logging"):
        yield


def run(control_plane: MockControlPlane, *args: str) -> Result:
    def factory() -> Provider:
        return Provider(
            ProviderConfig(
                username="ops@example.com",
                password="hunter2",
                cloud_api_key="KEY",
                cloud_api_secret="SECRET",
            ),
            client_factory=lambda _: control_plane,
            api_keys_factory=lambda _: MockApiKeys(),
        )

    return CliRunner().invoke(cli, list(args), obj={"provider_factory": factory})


def write_yaml(path: Path, content: dict) -> str:
    path.write_text(yaml.safe_dump(content))
    return str(path)


CONNECTOR = {
    "name": "orders-sink",
    "environment_id": "env-1",
    "cluster_id": "lkc-1",
    "config": {"topics": "orders"},
}


class TestSessionCommands:
    """Tests for login and environments."""

    def test_login(self, control_plane: MockControlPlane) -> None:
        result = run(control_plane, "login")

        assert result.exit_code == 0, result.output
        assert "organization 4242" in result.output

    def test_login_failure(self, control_plane: MockControlPlane) -> None:
        control_plane.fail_next("login", ApiError("invalid credentials"))

        result = run(control_plane, "login")

        assert result.exit_code == 1
        assert "invalid credentials" in result.output

    def test_environments(self, control_plane: MockControlPlane) -> None:
        control_plane.environments = {"env-1": Environment(id="env-1", name="prod")}

        result = run(control_plane, "environments")

        assert result.exit_code == 0
        assert "env-1\tprod" in result.output


class TestLifecycleCommands:
    """Tests for create, show, diff, apply and delete."""

    def test_create_connector(self, control_plane: MockControlPlane, tmp_path: Path) -> None:
        path = write_yaml(tmp_path / "connector.yaml", CONNECTOR)

        result = run(control_plane, "create", "connector", "-f", path)

        assert result.exit_code == 0, result.output
        state = yaml.safe_load(result.output)
        assert state["id"] == "orders-sink"
        assert ("env-1", "lkc-1", "orders-sink") in control_plane.connectors

    def test_show(self, control_plane: MockControlPlane) -> None:
        control_plane.connectors[("env-1", "lkc-1", "orders-sink")] = {"topics": "orders"}

        result = run(control_plane, "show", "connector", "env-1/lkc-1/orders-sink")

        assert result.exit_code == 0, result.output
        state = yaml.safe_load(result.output)
        assert state["config"] == {"topics": "orders"}

    def test_show_missing(self, control_plane: MockControlPlane) -> None:
        result = run(control_plane, "show", "connector", "env-1/lkc-1/nope")

        assert result.exit_code == 1
        assert "Not found" in result.output

    def test_show_bad_import_key(self, control_plane: MockControlPlane) -> None:
        result = run(control_plane, "show", "connector", "env-1/nope")

        assert result.exit_code == 1
        assert "<env ID>/<cluster ID>/<name>" in result.output

    def test_diff_ignores_noise(self, control_plane: MockControlPlane, tmp_path: Path) -> None:
        control_plane.connectors[("env-1", "lkc-1", "orders-sink")] = {"topics": "orders"}
        control_plane.read_extras = {"kafka.endpoint": "SASL_SSL://pkc-1:9092"}
        path = write_yaml(tmp_path / "connector.yaml", CONNECTOR)

        result = run(control_plane, "diff", "connector", "env-1/lkc-1/orders-sink", "-f", path)

        assert result.exit_code == 0, result.output
        assert "No changes" in result.output

    def test_apply_updates_drift(self, control_plane: MockControlPlane, tmp_path: Path) -> None:
        control_plane.connectors[("env-1", "lkc-1", "orders-sink")] = {"topics": "old"}
        path = write_yaml(tmp_path / "connector.yaml", CONNECTOR)

        result = run(control_plane, "apply", "connector", "env-1/lkc-1/orders-sink", "-f", path)

        assert result.exit_code == 0, result.output
        assert control_plane.connectors[("env-1", "lkc-1", "orders-sink")] == {"topics": "orders"}
        assert control_plane.call_count("update_connector_config") == 1

    def test_apply_without_drift(self, control_plane: MockControlPlane, tmp_path: Path) -> None:
        control_plane.connectors[("env-1", "lkc-1", "orders-sink")] = {"topics": "orders"}
        path = write_yaml(tmp_path / "connector.yaml", CONNECTOR)

        result = run(control_plane, "apply", "connector", "env-1/lkc-1/orders-sink", "-f", path)

        assert result.exit_code == 0
        assert "No changes" in result.output
        assert control_plane.call_count("update_connector_config") == 0

    def test_apply_refuses_replacement(
        self, control_plane: MockControlPlane, tmp_path: Path
    ) -> None:
        control_plane.connectors[("env-1", "lkc-1", "orders-sink")] = {"topics": "orders"}
        path = write_yaml(tmp_path / "connector.yaml", {**CONNECTOR, "cluster_id": "lkc-2"})

        result = run(control_plane, "apply", "connector", "env-1/lkc-1/orders-sink", "-f", path)

        assert result.exit_code == 1
        assert "require replacement" in result.output
        assert control_plane.call_count("update_connector_config") == 0

    def test_delete(self, control_plane: MockControlPlane) -> None:
        control_plane.connectors[("env-1", "lkc-1", "orders-sink")] = {"topics": "orders"}

        result = run(control_plane, "delete", "connector", "env-1/lkc-1/orders-sink")

        assert result.exit_code == 0, result.output
        assert control_plane.connectors == {}

    def test_invalid_yaml(self, control_plane: MockControlPlane, tmp_path: Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("- not\n- a mapping\n")

        result = run(control_plane, "create", "connector", "-f", str(path))

        assert result.exit_code == 1
        assert "mapping" in result.output

    def test_unknown_kind(self, control_plane: MockControlPlane) -> None:
        result = run(control_plane, "show", "topic", "x")

        assert result.exit_code == 2


class TestLookup:
    """Tests for data source lookup."""

    def test_lookup_environment(self, control_plane: MockControlPlane) -> None:
        control_plane.environments = {"env-7": Environment(id="env-7", name="prod")}

        result = run(control_plane, "lookup", "environment", "prod")

        assert result.exit_code == 0, result.output
        assert yaml.safe_load(result.output) == {"id": "env-7", "name": "prod"}

    def test_lookup_missing(self, control_plane: MockControlPlane) -> None:
        result = run(control_plane, "lookup", "environment", "qa")

        assert result.exit_code == 1
        assert "no environment named 'qa'" in result.output
