"""Diff suppression for connector configuration.

Decides which observed-vs-declared differences in a connector's config map
are noise rather than drift. Rules are evaluated in order and the first
match wins:

1. Keys the service derives from the environment (endpoint, region, cloud
   provider, ...) are always ignored.
2. Keys under the internal namespace are ignored.
3. A previously recorded value containing asterisks is a masked placeholder;
   the API never returns sensitive values on read, so the comparison is
   meaningless and is ignored.
4. Anything else is a real difference.

A suppressed difference must never lead to an update.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ATTRIBUTE = "config"

# Populated by the service from the environment/cluster the connector runs in
DEFAULT_IGNORED_KEYS: tuple[str, ...] = (
    "config.kafka.endpoint",
    "config.kafka.region",
    "config.kafka.dedicated",
    "config.cloud.provider",
    "config.cloud.environment",
    "config.valid.kafka.api.key",
    "config.schema.registry.url",
)

DEFAULT_IGNORED_PREFIXES: tuple[str, ...] = ("config.internal.",)

MASKED_VALUE_PATTERN = re.compile(r"\*+")


class DiffSuppressError(Exception):
    """Raised when suppression rules configuration is invalid."""

    pass


@dataclass(frozen=True)
class ConfigDifference:
    """A single (key, old, new) difference between recorded and declared state.

    Attributes:
        key: Flattened attribute path, e.g. "config.topics".
        old: Previously recorded (observed) value; None if absent.
        new: Newly declared value; None if removed.
    """

    key: str
    old: str | None
    new: str | None


def is_masked(value: str | None) -> bool:
    """Check whether a value is a masked placeholder (any run of asterisks)."""
    return bool(value) and MASKED_VALUE_PATTERN.search(value) is not None


@dataclass(frozen=True)
class DiffSuppressor:
    """Ordered suppression rules for a flattened config map.

    Attributes:
        ignored_keys: Exact keys that never count as drift.
        ignored_prefixes: Key prefixes that never count as drift.
        suppress_masked: Whether masked old values suppress the difference.
        log_suppressed: Whether to log each suppressed difference (audit).
    """

    ignored_keys: frozenset[str] = field(default_factory=lambda: frozenset(DEFAULT_IGNORED_KEYS))
    ignored_prefixes: tuple[str, ...] = DEFAULT_IGNORED_PREFIXES
    suppress_masked: bool = True
    log_suppressed: bool = True

    def reason(self, key: str, old: str | None, new: str | None) -> str | None:
        """Return why a difference is suppressed, or None if it is real drift."""
        if key in self.ignored_keys:
            return "auto-generated key"
        if any(key.startswith(prefix) for prefix in self.ignored_prefixes):
            return "internal key"
        if self.suppress_masked and is_masked(old):
            return "masked sensitive value"
        return None

    def suppress(self, key: str, old: str | None, new: str | None) -> bool:
        """Check whether the difference on key should be ignored."""
        reason = self.reason(key, old, new)
        if reason is None:
            return False
        if self.log_suppressed:
            logger.debug("Suppressing config difference", extra={"key": key, "reason": reason})
        return True

    def config_differences(
        self,
        old: dict[str, str],
        new: dict[str, str],
        attribute: str = CONFIG_ATTRIBUTE,
    ) -> list[ConfigDifference]:
        """Compute the significant differences between two config maps.

        Keys are flattened as "<attribute>.<key>" before rules are applied.

        Args:
            old: Recorded (observed) map.
            new: Declared map.
            attribute: Name of the map attribute.

        Returns:
            Differences that survive suppression, sorted by key.
        """
        significant: list[ConfigDifference] = []
        for name in sorted(set(old) | set(new)):
            before = old.get(name)
            after = new.get(name)
            if before == after:
                continue
            key = f"{attribute}.{name}"
            if self.suppress(key, before, after):
                continue
            significant.append(ConfigDifference(key=key, old=before, new=after))
        return significant

    def with_rules(
        self,
        keys: list[str] | None = None,
        prefixes: list[str] | None = None,
    ) -> DiffSuppressor:
        """Copy of this suppressor with additional keys and prefixes."""
        return DiffSuppressor(
            ignored_keys=self.ignored_keys | frozenset(keys or ()),
            ignored_prefixes=self.ignored_prefixes + tuple(prefixes or ()),
            suppress_masked=self.suppress_masked,
            log_suppressed=self.log_suppressed,
        )

    @classmethod
    def from_yaml(cls, yaml_content: str) -> DiffSuppressor:
        """Build a suppressor from YAML, extending the defaults.

        Expected format:
        ```yaml
        ignoredKeys:
          - "config.some.generated.key"
        ignoredPrefixes:
          - "config.vendor."
        suppressMasked: true
        logSuppressed: true
        ```

        Raises:
            DiffSuppressError: If YAML is invalid or malformed.
        """
        try:
            data: Any = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise DiffSuppressError(f"Invalid YAML in suppression rules: {e}") from e

        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise DiffSuppressError("Suppression rules must be a YAML object")

        keys = data.get("ignoredKeys", [])
        prefixes = data.get("ignoredPrefixes", [])
        for name, value in (("ignoredKeys", keys), ("ignoredPrefixes", prefixes)):
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise DiffSuppressError(f"'{name}' must be a list of strings")

        base = cls(
            suppress_masked=bool(data.get("suppressMasked", True)),
            log_suppressed=bool(data.get("logSuppressed", True)),
        )
        return base.with_rules(keys=keys, prefixes=prefixes)

    @classmethod
    def from_file(cls, path: str) -> DiffSuppressor:
        """Load suppression rules from a YAML file.

        Raises:
            DiffSuppressError: If the file cannot be read or parsed.
        """
        try:
            with open(path, encoding="utf-8") as f:
                content = f.read()
        except OSError as e:
            raise DiffSuppressError(f"Cannot read suppression rules file: {e}") from e

        suppressor = cls.from_yaml(content)
        logger.info(
            "Loaded diff suppression rules",
            extra={
                "path": path,
                "ignored_keys": len(suppressor.ignored_keys),
                "ignored_prefixes": len(suppressor.ignored_prefixes),
            },
        )
        return suppressor


DEFAULT_SUPPRESSOR = DiffSuppressor()


def suppress_connector_config_diff(key: str, old: str | None, new: str | None) -> bool:
    """Check whether a connector config difference is noise (default rules)."""
    return DEFAULT_SUPPRESSOR.suppress(key, old, new)
