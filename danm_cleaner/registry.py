"""DANM CRD access (DanmEp / DanmNet) through the Kubernetes API."""

from __future__ import annotations

import logging
from typing import Any, Iterator, Protocol

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from pydantic import ValidationError

from .errors import ConfigError, ConflictError, NotFoundError, RegistryError
from .models import EndpointRecord, NetworkDefinition
from .settings import Settings, settings as default_settings

LOG = logging.getLogger(__name__)


class EndpointRegistry(Protocol):
    def list_endpoints_by_host(self, host: str) -> list[EndpointRecord]: ...

    def list_endpoints_by_cid(self, cid: str) -> list[EndpointRecord]: ...

    def get_endpoint(self, namespace: str, name: str) -> EndpointRecord: ...

    def get_network(self, namespace: str, network_id: str) -> NetworkDefinition: ...

    def delete_endpoint(self, namespace: str, name: str) -> None: ...


def load_api_client(kubeconfig: str = "") -> k8s_client.ApiClient:
    """Build an API client from a kubeconfig file, or in-cluster when empty."""
    try:
        if kubeconfig:
            return k8s_config.new_client_from_config(config_file=kubeconfig)
        k8s_config.load_incluster_config()
        return k8s_client.ApiClient()
    except (ConfigException, OSError) as e:
        source = kubeconfig or "in-cluster service account"
        raise ConfigError(f"Error building kubeconfig from {source}: {e}") from e


class DanmRegistry:
    def __init__(self, api: k8s_client.CustomObjectsApi, cfg: Settings | None = None):
        self.api = api
        self.cfg = cfg or default_settings

    @classmethod
    def from_kubeconfig(cls, kubeconfig: str = "", cfg: Settings | None = None) -> "DanmRegistry":
        return cls(k8s_client.CustomObjectsApi(load_api_client(kubeconfig)), cfg)

    def _iter_endpoint_objects(self) -> Iterator[dict[str, Any]]:
        kwargs: dict[str, Any] = {"limit": self.cfg.list_page_size}
        while True:
            try:
                resp = self.api.list_cluster_custom_object(
                    self.cfg.api_group, self.cfg.api_version, self.cfg.endpoint_plural, **kwargs
                )
            except ApiException as e:
                raise RegistryError(f"Listing {self.cfg.endpoint_plural} failed: {e.status} {e.reason}") from e
            yield from resp.get("items") or []
            token = (resp.get("metadata") or {}).get("continue")
            if not token:
                return
            kwargs["_continue"] = token

    def _list_endpoints(self) -> Iterator[EndpointRecord]:
        for obj in self._iter_endpoint_objects():
            try:
                yield EndpointRecord.from_object(obj)
            except (KeyError, ValidationError) as e:
                name = (obj.get("metadata") or {}).get("name", "?")
                LOG.warning("Skipping malformed endpoint %s: %s", name, e)

    def list_endpoints_by_host(self, host: str) -> list[EndpointRecord]:
        return [ep for ep in self._list_endpoints() if ep.host == host]

    def list_endpoints_by_cid(self, cid: str) -> list[EndpointRecord]:
        return [ep for ep in self._list_endpoints() if ep.cid == cid]

    def get_endpoint(self, namespace: str, name: str) -> EndpointRecord:
        try:
            obj = self.api.get_namespaced_custom_object(
                self.cfg.api_group, self.cfg.api_version, namespace, self.cfg.endpoint_plural, name
            )
        except ApiException as e:
            if e.status == 404:
                raise NotFoundError(f"Endpoint {namespace}/{name} not found") from e
            raise RegistryError(f"Fetching endpoint {namespace}/{name} failed: {e.status} {e.reason}") from e
        try:
            return EndpointRecord.from_object(obj)
        except (KeyError, ValidationError) as e:
            raise RegistryError(f"Malformed endpoint {namespace}/{name}: {e}") from e

    def get_network(self, namespace: str, network_id: str) -> NetworkDefinition:
        try:
            obj = self.api.get_namespaced_custom_object(
                self.cfg.api_group, self.cfg.api_version, namespace, self.cfg.network_plural, network_id
            )
        except ApiException as e:
            if e.status == 404:
                raise NotFoundError(f"Network {namespace}/{network_id} not found") from e
            raise RegistryError(f"Fetching network {namespace}/{network_id} failed: {e.status} {e.reason}") from e
        try:
            return NetworkDefinition.from_object(obj)
        except (KeyError, ValidationError) as e:
            raise RegistryError(f"Malformed network {namespace}/{network_id}: {e}") from e

    def replace_network(self, network: NetworkDefinition, body: dict[str, Any]) -> None:
        """Write back a DanmNet; a stale resourceVersion raises ``ConflictError``."""
        try:
            self.api.replace_namespaced_custom_object(
                self.cfg.api_group, self.cfg.api_version, network.namespace, self.cfg.network_plural, network.name, body
            )
        except ApiException as e:
            if e.status == 404:
                raise NotFoundError(f"Network {network.namespace}/{network.name} not found") from e
            if e.status == 409:
                raise ConflictError(f"Network {network.namespace}/{network.name} changed concurrently") from e
            raise RegistryError(f"Updating network {network.namespace}/{network.name} failed: {e.status} {e.reason}") from e

    def delete_endpoint(self, namespace: str, name: str) -> None:
        try:
            self.api.delete_namespaced_custom_object(
                self.cfg.api_group, self.cfg.api_version, namespace, self.cfg.endpoint_plural, name
            )
        except ApiException as e:
            if e.status == 404:
                LOG.debug("Endpoint %s/%s already gone", namespace, name)
                return
            raise RegistryError(f"Deleting endpoint {namespace}/{name} failed: {e.status} {e.reason}") from e
