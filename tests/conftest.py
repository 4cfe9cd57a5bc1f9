from __future__ import annotations

import pytest

from danm_cleaner.docker_ops import EventSubscription
from danm_cleaner.errors import NotFoundError, RegistryError, SubscriptionError
from danm_cleaner.models import ContainerEvent, ContainerRef, EndpointRecord, NetworkDefinition
from danm_cleaner.reconciler import Reconciler
from danm_cleaner.settings import Settings
from danm_cleaner.watcher import EventWatcher


class FakeRegistry:
    """In-memory DanmEp/DanmNet store that records every call."""

    def __init__(self) -> None:
        self.endpoints: dict[tuple[str, str], EndpointRecord] = {}
        self.networks: dict[tuple[str, str], NetworkDefinition] = {}
        self.broken_networks: set[str] = set()
        self.fail_list = False
        self.fail_delete: set[str] = set()
        self.calls: list[tuple] = []

    def add_endpoint(self, **kw) -> EndpointRecord:
        ep = EndpointRecord(**kw)
        self.endpoints[(ep.namespace, ep.name)] = ep
        return ep

    def add_network(self, namespace: str, name: str, network_type: str = "macvlan") -> NetworkDefinition:
        net = NetworkDefinition(namespace=namespace, name=name, network_id=name, network_type=network_type)
        self.networks[(namespace, name)] = net
        return net

    def list_endpoints_by_host(self, host: str) -> list[EndpointRecord]:
        self.calls.append(("list_by_host", host))
        if self.fail_list:
            raise RegistryError("apiserver unavailable")
        return [ep for ep in self.endpoints.values() if ep.host == host]

    def list_endpoints_by_cid(self, cid: str) -> list[EndpointRecord]:
        self.calls.append(("list_by_cid", cid))
        if self.fail_list:
            raise RegistryError("apiserver unavailable")
        return [ep for ep in self.endpoints.values() if ep.cid == cid]

    def get_endpoint(self, namespace: str, name: str) -> EndpointRecord:
        self.calls.append(("get_endpoint", namespace, name))
        try:
            return self.endpoints[(namespace, name)]
        except KeyError:
            raise NotFoundError(name) from None

    def get_network(self, namespace: str, network_id: str) -> NetworkDefinition:
        self.calls.append(("get_network", namespace, network_id))
        if network_id in self.broken_networks:
            raise RegistryError("timeout")
        try:
            return self.networks[(namespace, network_id)]
        except KeyError:
            raise NotFoundError(network_id) from None

    def delete_endpoint(self, namespace: str, name: str) -> None:
        self.calls.append(("delete", namespace, name))
        if name in self.fail_delete:
            raise RegistryError("forbidden")
        self.endpoints.pop((namespace, name), None)


class FakeAllocator:
    def __init__(self) -> None:
        self.released: list[tuple[str, str]] = []
        self.fail = False

    def release_address(self, network: NetworkDefinition, address: str) -> None:
        if self.fail:
            raise RuntimeError("bitmap update failed")
        self.released.append((network.name, address))


class FakeStream:
    def __init__(self, items) -> None:
        self._it = iter(items)
        self.closed = False

    def __next__(self):
        item = next(self._it)
        if isinstance(item, Exception):
            raise item
        return item

    def close(self) -> None:
        self.closed = True


class FakeRuntime:
    def __init__(self) -> None:
        self.containers: list[ContainerRef] = []
        self.events: list = []
        self.fail_list = False
        self.fail_subscribe = False
        self.streams: list[FakeStream] = []

    def list_containers(self, exited_only: bool = False) -> list[ContainerRef]:
        if self.fail_list:
            raise RuntimeError("docker daemon gone")
        if exited_only:
            return [c for c in self.containers if c.status == "exited"]
        return list(self.containers)

    def subscribe_events(self) -> EventSubscription:
        if self.fail_subscribe:
            raise SubscriptionError("Cannot subscribe to docker events")
        stream = FakeStream(self.events)
        self.streams.append(stream)
        return EventSubscription(stream)


def docker_event(action: str, cid: str = "abc", category: str = "container", sandbox: bool | None = True) -> dict:
    attrs = {"name": "k8s_POD_web-0"}
    if sandbox is not None:
        attrs["io.kubernetes.docker.type"] = "podsandbox" if sandbox else "container"
    return {"Type": category, "Action": action, "Actor": {"ID": cid, "Attributes": attrs}}


def container_event(*args, **kwargs) -> ContainerEvent:
    return ContainerEvent.from_docker(docker_event(*args, **kwargs))


@pytest.fixture
def cfg() -> Settings:
    return Settings(exempt_network_type="ipvlan")


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def allocator() -> FakeAllocator:
    return FakeAllocator()


@pytest.fixture
def reconciler(registry, runtime, allocator, cfg) -> Reconciler:
    return Reconciler(registry, runtime, allocator, cfg)


@pytest.fixture
def watcher(reconciler, registry, runtime, cfg) -> EventWatcher:
    return EventWatcher(reconciler, registry, runtime, cfg)


@pytest.fixture
def raw_event():
    return docker_event


@pytest.fixture
def make_event():
    return container_event
