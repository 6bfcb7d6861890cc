"""HTTP clients for the Confluent Cloud control plane.

Two APIs are involved:
- The control plane (sessions, accounts/environments, clusters, connectors,
  schema registries, service accounts). Authenticated with a bearer token
  obtained by login().
- The API keys endpoint. Authenticated with HTTP basic auth using a cloud
  API key and secret, independent of the login session.

Every failed call raises ApiError carrying the server's error message. The
message text is what the retry classifiers in errors.py inspect.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from .errors import ApiError

logger = logging.getLogger(__name__)

USER_AGENT = "ccloud-provider/0.1.0"
SASL_SSL_PREFIX = "SASL_SSL://"


# =============================================================================
# Snapshots
# =============================================================================


@dataclass(frozen=True)
class Me:
    """Identity of the logged-in user."""

    user_id: int
    email: str
    organization_id: int

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Me:
        user = data.get("user") or {}
        account = data.get("account") or {}
        organization = data.get("organization") or {}
        org_id = account.get("organization_id") or organization.get("id") or 0
        return cls(
            user_id=int(user.get("id") or 0),
            email=str(user.get("email") or ""),
            organization_id=int(org_id),
        )


@dataclass(frozen=True)
class Environment:
    id: str
    name: str
    organization_id: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Environment:
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            organization_id=int(data.get("organization_id") or 0),
        )


@dataclass(frozen=True)
class Cluster:
    id: str
    name: str
    environment_id: str
    service_provider: str = ""
    region: str = ""
    availability: str = ""
    endpoint: str = ""
    status: str = ""
    storage: int = 0
    network_ingress: int = 0
    network_egress: int = 0
    deployment: dict[str, str] = field(default_factory=dict)
    cku: int = 0

    @property
    def bootstrap_servers(self) -> str:
        return self.endpoint.removeprefix(SASL_SSL_PREFIX)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Cluster:
        durability = str(data.get("durability", ""))
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            environment_id=str(data.get("account_id", "")),
            service_provider=str(data.get("service_provider", "")),
            region=str(data.get("region", "")),
            availability="HIGH" if durability == "HIGH" else "LOW" if durability else "",
            endpoint=str(data.get("endpoint", "")),
            status=str(data.get("status", "")),
            storage=int(data.get("storage") or 0),
            network_ingress=int(data.get("network_ingress") or 0),
            network_egress=int(data.get("network_egress") or 0),
            deployment={k: str(v) for k, v in (data.get("deployment") or {}).items()
                        if isinstance(v, str | int)},
            cku=int(data.get("cku") or 0),
        )


@dataclass(frozen=True)
class ClusterRequest:
    """Parameters for a cluster create call."""

    name: str
    environment_id: str
    service_provider: str
    region: str
    availability: str
    storage: int = 5000
    network_ingress: int = 100
    network_egress: int = 100
    deployment: dict[str, str] = field(default_factory=dict)
    cku: int = 0

    def to_api(self) -> dict[str, Any]:
        config: dict[str, Any] = {
            "name": self.name,
            "account_id": self.environment_id,
            "storage": self.storage,
            "network_ingress": self.network_ingress,
            "network_egress": self.network_egress,
            "region": self.region,
            "service_provider": self.service_provider,
            "durability": self.availability,
            "deployment": {"account_id": self.environment_id, **self.deployment},
        }
        if self.cku:
            config["cku"] = self.cku
        return {"config": config}


@dataclass(frozen=True)
class Connector:
    name: str
    config: dict[str, str] = field(default_factory=dict)
    type: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Connector:
        return cls(
            name=str(data.get("name", "")),
            config={str(k): str(v) for k, v in (data.get("config") or {}).items()},
            type=str(data.get("type", "")),
        )


@dataclass(frozen=True)
class SchemaRegistry:
    id: str
    environment_id: str
    endpoint: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> SchemaRegistry:
        return cls(
            id=str(data["id"]),
            environment_id=str(data.get("account_id", "")),
            endpoint=str(data.get("endpoint", "")),
        )


@dataclass(frozen=True)
class ServiceAccount:
    id: int
    name: str
    description: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> ServiceAccount:
        return cls(
            id=int(data["id"]),
            name=str(data.get("service_name", "")),
            description=str(data.get("service_description", "")),
        )


@dataclass(frozen=True)
class ApiKey:
    """API key as returned by the API keys endpoint.

    The secret is only present in the create response.
    """

    id: str
    owner_id: str = ""
    resource_id: str = ""
    display_name: str = ""
    description: str = ""
    secret: str = field(default="", repr=False)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> ApiKey:
        spec = data.get("spec") or {}
        return cls(
            id=str(data["id"]),
            owner_id=str((spec.get("owner") or {}).get("id", "")),
            resource_id=str((spec.get("resource") or {}).get("id", "")),
            display_name=str(spec.get("display_name", "")),
            description=str(spec.get("description", "")),
            secret=str(spec.get("secret") or ""),
        )


# =============================================================================
# Transport helpers
# =============================================================================


def _error_message(response: httpx.Response) -> str:
    """Extract the server's error message from a failed response."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        errors = body.get("errors")
        if isinstance(errors, list) and errors:
            first = errors[0]
            if isinstance(first, dict):
                return str(first.get("detail") or first.get("title") or first)
            return str(first)
        if body.get("message"):
            return str(body["message"])
    return response.text or response.reason_phrase


class _HttpApi:
    """Shared request/response handling for both APIs."""

    def __init__(self, http: httpx.Client) -> None:
        self._http = http

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self._http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise ApiError(f"{method} {path}: {e}") from e

        if response.is_error:
            message = _error_message(response)
            logger.debug(
                "API request failed",
                extra={"method": method, "path": path, "status_code": response.status_code},
            )
            raise ApiError(message, status_code=response.status_code)

        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError as e:
            raise ApiError(f"{method} {path}: invalid JSON response") from e
        # Some control-plane endpoints report errors in a 200 body
        if isinstance(body, dict) and isinstance(body.get("error"), dict | str) and body["error"]:
            error = body["error"]
            message = error.get("message", str(error)) if isinstance(error, dict) else error
            raise ApiError(str(message), status_code=response.status_code)
        return body if isinstance(body, dict) else {"items": body}

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> _HttpApi:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


# =============================================================================
# Control plane
# =============================================================================


class ControlPlaneClient(_HttpApi):
    """Client for the control-plane API (login session, bearer token)."""

    def __init__(
        self,
        username: str,
        password: str,
        *,
        base_url: str = "https://confluent.cloud",
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(
            httpx.Client(
                base_url=base_url,
                timeout=timeout,
                transport=transport,
                headers={"User-Agent": USER_AGENT},
            )
        )
        self._username = username
        self._password = password

    @property
    def is_authenticated(self) -> bool:
        return "Authorization" in self._http.headers

    def login(self) -> None:
        """Create a session and attach its token to subsequent requests."""
        body = self._request(
            "POST",
            "/api/sessions",
            json={"email": self._username, "password": self._password},
        )
        token = body.get("token")
        if not token:
            raise ApiError("login response did not contain a token")
        self._http.headers["Authorization"] = f"Bearer {token}"

    def me(self) -> Me:
        return Me.from_api(self._request("GET", "/api/me"))

    # Environments (the control plane calls them accounts)

    def list_environments(self) -> list[Environment]:
        body = self._request("GET", "/api/accounts")
        return [Environment.from_api(a) for a in body.get("accounts") or []]

    def get_environment(self, environment_id: str) -> Environment:
        body = self._request("GET", f"/api/accounts/{environment_id}")
        return Environment.from_api(body["account"])

    def create_environment(self, name: str, organization_id: int) -> Environment:
        body = self._request(
            "POST",
            "/api/accounts",
            json={"account": {"name": name, "organization_id": organization_id}},
        )
        return Environment.from_api(body["account"])

    def update_environment(
        self, environment_id: str, name: str, organization_id: int
    ) -> Environment:
        body = self._request(
            "PUT",
            f"/api/accounts/{environment_id}",
            json={
                "account": {
                    "id": environment_id,
                    "name": name,
                    "organization_id": organization_id,
                }
            },
        )
        return Environment.from_api(body["account"])

    def delete_environment(self, environment_id: str) -> None:
        self._request(
            "DELETE", f"/api/accounts/{environment_id}", json={"account": {"id": environment_id}}
        )

    # Kafka clusters

    def list_clusters(self, environment_id: str) -> list[Cluster]:
        body = self._request("GET", "/api/clusters", params={"account_id": environment_id})
        return [Cluster.from_api(c) for c in body.get("clusters") or []]

    def get_cluster(self, cluster_id: str, environment_id: str) -> Cluster:
        body = self._request(
            "GET", f"/api/clusters/{cluster_id}", params={"account_id": environment_id}
        )
        return Cluster.from_api(body["cluster"])

    def create_cluster(self, request: ClusterRequest) -> Cluster:
        body = self._request("POST", "/api/clusters", json=request.to_api())
        return Cluster.from_api(body["cluster"])

    def update_cluster(self, cluster_id: str, environment_id: str, name: str) -> Cluster:
        body = self._request(
            "PUT",
            f"/api/clusters/{cluster_id}",
            json={"cluster": {"id": cluster_id, "account_id": environment_id, "name": name}},
        )
        return Cluster.from_api(body["cluster"])

    def delete_cluster(self, cluster_id: str, environment_id: str) -> None:
        self._request(
            "DELETE",
            f"/api/clusters/{cluster_id}",
            json={"cluster": {"id": cluster_id, "account_id": environment_id}},
        )

    # Connectors

    @staticmethod
    def _connectors_path(environment_id: str, cluster_id: str) -> str:
        return f"/api/accounts/{environment_id}/clusters/{cluster_id}/connectors"

    def create_connector(
        self, environment_id: str, cluster_id: str, name: str, config: dict[str, str]
    ) -> Connector:
        body = self._request(
            "POST",
            self._connectors_path(environment_id, cluster_id),
            json={"name": name, "config": config},
        )
        return Connector.from_api(body)

    def get_connector(self, environment_id: str, cluster_id: str, name: str) -> Connector:
        body = self._request("GET", f"{self._connectors_path(environment_id, cluster_id)}/{name}")
        return Connector.from_api(body)

    def update_connector_config(
        self, environment_id: str, cluster_id: str, name: str, config: dict[str, str]
    ) -> Connector:
        body = self._request(
            "PUT",
            f"{self._connectors_path(environment_id, cluster_id)}/{name}/config",
            json=config,
        )
        return Connector.from_api(body)

    def delete_connector(self, environment_id: str, cluster_id: str, name: str) -> None:
        self._request("DELETE", f"{self._connectors_path(environment_id, cluster_id)}/{name}")

    # Schema registry

    def get_schema_registry(self, environment_id: str) -> SchemaRegistry:
        body = self._request(
            "GET", "/api/schema_registries", params={"account_id": environment_id}
        )
        registries = body.get("clusters") or []
        if not registries:
            raise ApiError(
                f"schema registry for environment {environment_id} not found", status_code=404
            )
        return SchemaRegistry.from_api(registries[0])

    def create_schema_registry(
        self, environment_id: str, location: str, service_provider: str
    ) -> SchemaRegistry:
        body = self._request(
            "POST",
            "/api/schema_registries",
            json={
                "config": {
                    "account_id": environment_id,
                    "location": location,
                    "service_provider": service_provider,
                    "name": "account schema-registry",
                }
            },
        )
        return SchemaRegistry.from_api(body["cluster"])

    # Service accounts

    def list_service_accounts(self) -> list[ServiceAccount]:
        body = self._request("GET", "/api/service_accounts")
        return [ServiceAccount.from_api(u) for u in body.get("users") or []]

    def create_service_account(self, name: str, description: str) -> ServiceAccount:
        body = self._request(
            "POST",
            "/api/service_accounts",
            json={"user": {"service_name": name, "service_description": description}},
        )
        return ServiceAccount.from_api(body["user"])

    def delete_service_account(self, service_account_id: int) -> None:
        self._request(
            "DELETE",
            f"/api/service_accounts/{service_account_id}",
            json={"user": {"id": service_account_id}},
        )


# =============================================================================
# API keys
# =============================================================================


class ApiKeysClient(_HttpApi):
    """Client for the API keys endpoint (HTTP basic auth with a cloud API key)."""

    PATH = "/iam/v2/api-keys"

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        *,
        base_url: str = "https://api.confluent.cloud",
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(
            httpx.Client(
                base_url=base_url,
                timeout=timeout,
                transport=transport,
                auth=httpx.BasicAuth(api_key, api_secret),
                headers={"User-Agent": USER_AGENT},
            )
        )

    def create_api_key(
        self, owner_id: str, resource_id: str, display_name: str = "", description: str = ""
    ) -> ApiKey:
        spec: dict[str, Any] = {
            "display_name": display_name,
            "description": description,
            "owner": {"id": owner_id},
        }
        if resource_id:
            spec["resource"] = {"id": resource_id}
        return ApiKey.from_api(self._request("POST", self.PATH, json={"spec": spec}))

    def get_api_key(self, key_id: str) -> ApiKey:
        return ApiKey.from_api(self._request("GET", f"{self.PATH}/{key_id}"))

    def update_api_key(self, key_id: str, display_name: str, description: str) -> ApiKey:
        return ApiKey.from_api(
            self._request(
                "PATCH",
                f"{self.PATH}/{key_id}",
                json={"spec": {"display_name": display_name, "description": description}},
            )
        )

    def delete_api_key(self, key_id: str) -> None:
        self._request("DELETE", f"{self.PATH}/{key_id}")
