"""Confluent Cloud API Mock for Testing.

In-memory replacements for the control-plane and API keys clients, plus a
virtual clock, so reconcilers and retry loops run without network access or
real waits.

Key Features:
- In-memory state for environments, clusters, connectors, schema
  registries, service accounts and API keys
- Call recording for assertions
- Per-method error injection (rate limits, provisioning, not found)
- Server-side config decoration (derived keys, masked secrets) on reads

Usage:
    from ccloud_mock import MockControlPlane, MockApiKeys, make_session

    control_plane = MockControlPlane()
    control_plane.fail_next("create_connector", ApiError(PROVISIONING_MESSAGE))
    reconciler = ConnectorReconciler(make_session(control_plane))
"""

from __future__ import annotations

from typing import Any

from ccloud_provider.session import Session

from .clock import FakeClock
from .control_plane import (
    PROVISIONING_MESSAGE,
    RATE_LIMIT_MESSAGE,
    MockApiKeys,
    MockControlPlane,
    not_found,
)


def make_session(
    control_plane: MockControlPlane | None = None, api_keys: MockApiKeys | None = None
) -> Session:
    """Session wired to the mocks, skipping login."""
    control_plane = control_plane or MockControlPlane()
    control_plane.authenticated = True
    client: Any = control_plane
    keys: Any = api_keys or MockApiKeys()
    return Session(client=client, api_keys=keys)


__all__ = [
    "PROVISIONING_MESSAGE",
    "RATE_LIMIT_MESSAGE",
    "FakeClock",
    "MockApiKeys",
    "MockControlPlane",
    "make_session",
    "not_found",
]
