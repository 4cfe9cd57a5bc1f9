from __future__ import annotations

import logging
from typing import Any, Iterator, Protocol

import docker
from docker.errors import DockerException
from pydantic import ValidationError

from .errors import RuntimeClientError, SubscriptionError
from .models import ContainerEvent, ContainerRef

LOG = logging.getLogger(__name__)


class ContainerRuntime(Protocol):
    def list_containers(self, exited_only: bool = False) -> list[ContainerRef]: ...

    def subscribe_events(self) -> "EventSubscription": ...


def _client() -> docker.DockerClient:
    return docker.from_env()


class EventSubscription:
    """Open stream of container events from the docker daemon.

    Use as a context manager; leaving the block closes the stream.
    Transport failures while reading surface as ``SubscriptionError``.
    """

    def __init__(self, stream: Any) -> None:
        self._stream = stream
        self._closed = False

    def __enter__(self) -> "EventSubscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __iter__(self) -> Iterator[ContainerEvent]:
        while True:
            try:
                raw = next(self._stream)
            except StopIteration:
                return
            except Exception as e:
                raise SubscriptionError(f"Event stream failed: {type(e).__name__}: {e}") from e
            if not isinstance(raw, dict):
                LOG.debug("Ignoring undecoded event payload %r", raw)
                continue
            try:
                event = ContainerEvent.from_docker(raw)
            except (ValidationError, TypeError, ValueError) as e:
                LOG.warning("Ignoring malformed event payload %r: %s", raw, e)
                continue
            yield event

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._stream.close()
        except Exception:
            # Teardown must not block exit.
            LOG.exception("Failed to close docker event stream")


class DockerRuntime:
    """Container listings and lifecycle events from the local docker daemon."""

    def __init__(self, client: docker.DockerClient):
        self.client = client

    @classmethod
    def from_env(cls) -> "DockerRuntime":
        try:
            return cls(_client())
        except DockerException as e:
            raise RuntimeClientError(f"Cannot connect to docker: {e}") from e

    def list_containers(self, exited_only: bool = False) -> list[ContainerRef]:
        filters: dict[str, Any] = {}
        if exited_only:
            filters["status"] = "exited"
        try:
            # sparse: a container removed while listing must not fail the call
            containers = self.client.containers.list(all=True, filters=filters, sparse=True)
        except DockerException as e:
            raise RuntimeClientError(f"Listing containers failed: {e}") from e
        return [ContainerRef(id=c.id, status=str(c.attrs.get("State") or "")) for c in containers]

    def subscribe_events(self) -> EventSubscription:
        try:
            stream = self.client.events(decode=True, filters={"type": "container"})
        except DockerException as e:
            raise SubscriptionError(f"Cannot subscribe to docker events: {e}") from e
        return EventSubscription(stream)
