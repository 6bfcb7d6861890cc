"""Tests for connector config diff suppression."""

from pathlib import Path

import pytest

from ccloud_provider.diff_suppress import (
    DEFAULT_IGNORED_KEYS,
    DEFAULT_SUPPRESSOR,
    DiffSuppressError,
    DiffSuppressor,
    is_masked,
    suppress_connector_config_diff,
)


class TestSuppress:
    """Tests for the default suppression rules."""

    def test_auto_generated_key(self) -> None:
        """Test service-derived keys are never drift."""
        assert suppress_connector_config_diff("config.kafka.region", "x", "y")

    @pytest.mark.parametrize("key", DEFAULT_IGNORED_KEYS)
    def test_every_default_key(self, key: str) -> None:
        """Test every listed key is ignored."""
        assert suppress_connector_config_diff(key, "a", "b")

    def test_internal_prefix(self) -> None:
        """Test internal keys are never drift."""
        assert suppress_connector_config_diff("config.internal.foo", "a", "b")

    def test_masked_old_value(self) -> None:
        """Test a masked recorded value hides the comparison."""
        assert suppress_connector_config_diff("config.topic", "****", "secret")

    def test_real_difference(self) -> None:
        """Test an ordinary change is reported."""
        assert not suppress_connector_config_diff("config.topic", "old", "new")

    def test_masked_new_value_is_not_suppressed(self) -> None:
        """Test only the recorded side is checked for masking."""
        assert not suppress_connector_config_diff("config.topic", "old", "****")

    def test_prefix_must_match_from_start(self) -> None:
        """Test the internal prefix is not matched mid-key."""
        assert not suppress_connector_config_diff("config.my.config.internal.x", "a", "b")


class TestMasking:
    """Tests for is_masked."""

    @pytest.mark.parametrize("value", ["*", "****", "ab**cd", "********"])
    def test_masked(self, value: str) -> None:
        assert is_masked(value)

    @pytest.mark.parametrize("value", ["", None, "plain", "a+b"])
    def test_not_masked(self, value: str | None) -> None:
        assert not is_masked(value)


class TestConfigDifferences:
    """Tests for DiffSuppressor.config_differences."""

    def test_only_significant_differences(self) -> None:
        """Test noise is dropped and real changes are kept, sorted by key."""
        old = {
            "topics": "orders",
            "kafka.endpoint": "SASL_SSL://pkc-1:9092",
            "internal.offset": "7",
            "password": "****",
            "tasks.max": "1",
        }
        new = {"topics": "orders,refunds", "password": "hunter2", "tasks.max": "2"}

        differences = DEFAULT_SUPPRESSOR.config_differences(old, new)

        assert [(d.key, d.old, d.new) for d in differences] == [
            ("config.tasks.max", "1", "2"),
            ("config.topics", "orders", "orders,refunds"),
        ]

    def test_added_and_removed_keys(self) -> None:
        """Test keys missing on one side are differences."""
        differences = DEFAULT_SUPPRESSOR.config_differences({"a": "1"}, {"b": "2"})

        assert [(d.key, d.old, d.new) for d in differences] == [
            ("config.a", "1", None),
            ("config.b", None, "2"),
        ]


class TestFromYaml:
    """Tests for loading extra rules from YAML."""

    def test_extends_defaults(self) -> None:
        """Test YAML rules are added on top of the defaults."""
        suppressor = DiffSuppressor.from_yaml(
            """
ignoredKeys:
  - config.vendor.build
ignoredPrefixes:
  - config.metrics.
"""
        )

        assert suppressor.suppress("config.vendor.build", "1", "2")
        assert suppressor.suppress("config.metrics.interval", "1", "2")
        assert suppressor.suppress("config.kafka.region", "1", "2")
        assert not suppressor.suppress("config.topics", "1", "2")

    def test_disable_masking(self) -> None:
        """Test masked-value suppression can be turned off."""
        suppressor = DiffSuppressor.from_yaml("suppressMasked: false")

        assert not suppressor.suppress("config.password", "****", "x")

    def test_empty_yaml(self) -> None:
        assert DiffSuppressor.from_yaml("") == DiffSuppressor()

    @pytest.mark.parametrize(
        "content",
        ["- just\n- a list", "ignoredKeys: config.single", "ignoredKeys: [1, 2]", "{unclosed"],
    )
    def test_invalid_yaml(self, content: str) -> None:
        with pytest.raises(DiffSuppressError):
            DiffSuppressor.from_yaml(content)

    def test_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "rules.yaml"
        path.write_text("ignoredKeys:\n  - config.vendor.build\n")

        suppressor = DiffSuppressor.from_file(str(path))

        assert suppressor.suppress("config.vendor.build", "1", "2")

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(DiffSuppressError, match="Cannot read"):
            DiffSuppressor.from_file(str(tmp_path / "absent.yaml"))
