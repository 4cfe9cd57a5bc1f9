"""Releasing addresses back to a DanmNet allocation bitmap.

The bitmap lives in ``spec.Options.alloc`` as base64. Bit ``n`` (most
significant bit of each byte first) stands for the ``n``-th address of
``spec.Options.cidr``; a set bit means the address is taken.
"""

from __future__ import annotations

import base64
import binascii
import copy
import ipaddress
import logging
from typing import Any, Protocol

from .errors import AllocatorError, ConflictError, RegistryError
from .models import NetworkDefinition

LOG = logging.getLogger(__name__)


class AddressAllocator(Protocol):
    def release_address(self, network: NetworkDefinition, address: str) -> None: ...


def address_offset(cidr: str, address: str) -> int | None:
    """Index of ``address`` inside ``cidr``, or None when it is not part of it."""
    try:
        net = ipaddress.ip_network(cidr, strict=False)
        ip = ipaddress.ip_interface(address).ip
    except ValueError:
        return None
    if ip.version != net.version or ip not in net:
        return None
    return int(ip) - int(net.network_address)


def clear_bit(alloc: str, offset: int) -> str | None:
    """Return ``alloc`` with bit ``offset`` cleared, or None if nothing changes."""
    try:
        data = bytearray(base64.b64decode(alloc, validate=True))
    except (binascii.Error, ValueError) as e:
        raise AllocatorError(f"Corrupt allocation bitmap: {e}") from e
    idx, mask = offset // 8, 1 << (7 - offset % 8)
    if idx >= len(data) or not data[idx] & mask:
        return None
    data[idx] &= ~mask & 0xFF
    return base64.b64encode(bytes(data)).decode("ascii")


class NetworkWriter(Protocol):
    def get_network(self, namespace: str, network_id: str) -> NetworkDefinition: ...

    def replace_network(self, network: NetworkDefinition, body: dict[str, Any]) -> None: ...


class DanmAllocator:
    def __init__(self, registry: NetworkWriter, retries: int = 5):
        self.registry = registry
        self.retries = max(1, int(retries))

    def _released_body(self, network: NetworkDefinition, address: str) -> dict[str, Any] | None:
        if not network.cidr or not network.alloc:
            return None
        offset = address_offset(network.cidr, address)
        if offset is None:
            LOG.debug("Address %s is outside %s of network %s", address, network.cidr, network.name)
            return None
        alloc = clear_bit(network.alloc, offset)
        if alloc is None:
            return None
        body = copy.deepcopy(network.raw)
        body.setdefault("spec", {}).setdefault("Options", {})["alloc"] = alloc
        return body

    def release_address(self, network: NetworkDefinition, address: str) -> None:
        if not address:
            return
        for attempt in range(1, self.retries + 1):
            body = self._released_body(network, address)
            if body is None:
                return
            try:
                self.registry.replace_network(network, body)
                LOG.info("Released %s in network %s/%s", address, network.namespace, network.name)
                return
            except ConflictError:
                LOG.debug("Conflict releasing %s (attempt %d/%d), re-reading network", address, attempt, self.retries)
            except RegistryError as e:
                raise AllocatorError(f"Releasing {address} failed: {e}") from e
            try:
                network = self.registry.get_network(network.namespace, network.name)
            except RegistryError as e:
                raise AllocatorError(f"Releasing {address} failed: {e}") from e
        raise AllocatorError(f"Releasing {address} in network {network.name} gave up after {self.retries} conflicts")
