from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from .docker_ops import ContainerRuntime
from .errors import NotFoundError
from .ipam import AddressAllocator
from .models import EndpointRecord
from .registry import EndpointRegistry
from .settings import Settings, settings as default_settings

LOG = logging.getLogger(__name__)


class DeleteOutcome(enum.Enum):
    DELETED = "deleted"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class CleanupStats:
    """Summary of one startup sweep."""

    endpoints: int = 0
    dead_matches: int = 0
    missing_matches: int = 0
    deleted: int = 0
    skipped: int = 0
    failed: int = 0

    def record(self, outcome: DeleteOutcome) -> None:
        if outcome is DeleteOutcome.DELETED:
            self.deleted += 1
        elif outcome is DeleteOutcome.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1


class Reconciler:
    """Removes DanmEps whose containers are dead or gone, freeing their addresses."""

    def __init__(
        self,
        registry: EndpointRegistry,
        runtime: ContainerRuntime,
        allocator: AddressAllocator,
        cfg: Settings | None = None,
    ):
        self.registry = registry
        self.runtime = runtime
        self.allocator = allocator
        self.cfg = cfg or default_settings

    def delete_endpoint(self, ep: EndpointRecord) -> DeleteOutcome:
        """Release the endpoint's address (if pool-backed) and delete the record.

        Never raises. Without the network definition nothing is touched: deleting
        the record alone would leak its address for good. A record that is already
        gone, or now belongs to another container, is left alone so its address is
        released at most once.
        """
        try:
            current = self.registry.get_endpoint(ep.namespace, ep.name)
        except NotFoundError:
            LOG.debug("Endpoint %s/%s already gone", ep.namespace, ep.name)
            return DeleteOutcome.DELETED
        except Exception:
            LOG.exception("Cannot read endpoint %s/%s", ep.namespace, ep.name)
            return DeleteOutcome.FAILED
        if current.cid != ep.cid:
            LOG.warning(
                "Endpoint %s/%s now belongs to container %s, not %s; leaving it", ep.namespace, ep.name, current.cid, ep.cid
            )
            return DeleteOutcome.SKIPPED

        try:
            net = self.registry.get_network(ep.namespace, ep.network_id)
        except NotFoundError:
            LOG.warning("Network %s/%s of endpoint %s not found, leaving endpoint", ep.namespace, ep.network_id, ep.name)
            return DeleteOutcome.SKIPPED
        except Exception:
            LOG.exception("Cannot fetch net info for net: %s (endpoint %s/%s)", ep.network_id, ep.namespace, ep.name)
            return DeleteOutcome.FAILED

        if net.network_type != self.cfg.exempt_network_type:
            try:
                self.allocator.release_address(net, ep.address)
            except Exception:
                LOG.exception("Releasing %s of endpoint %s/%s failed", ep.address, ep.namespace, ep.name)

        try:
            self.registry.delete_endpoint(ep.namespace, ep.name)
        except Exception:
            LOG.exception("Deleting endpoint %s/%s failed", ep.namespace, ep.name)
            return DeleteOutcome.FAILED
        LOG.info("Deleted endpoint %s/%s (container %s, address %s)", ep.namespace, ep.name, ep.cid, ep.address or "-")
        return DeleteOutcome.DELETED

    def reconcile(self, hostname: str) -> CleanupStats:
        """One-shot sweep of endpoints scheduled to ``hostname``.

        Deletes endpoints whose container has exited, then endpoints whose
        container the runtime does not know at all. An endpoint deleted by the
        first pass is not visited again by the second.
        """
        stats = CleanupStats()
        try:
            eps = self.registry.list_endpoints_by_host(hostname)
            dead = {c.id for c in self.runtime.list_containers(exited_only=True)}
            known = {c.id for c in self.runtime.list_containers()}
        except Exception as e:
            LOG.error("Cleanup failed: %s: %s", type(e).__name__, e)
            return stats
        stats.endpoints = len(eps)

        done: set[tuple[str, str]] = set()
        for ep in eps:
            if ep.cid in dead:
                stats.dead_matches += 1
                outcome = self.delete_endpoint(ep)
                stats.record(outcome)
                if outcome is DeleteOutcome.DELETED:
                    done.add((ep.namespace, ep.name))

        for ep in eps:
            if ep.cid not in known and (ep.namespace, ep.name) not in done:
                stats.missing_matches += 1
                stats.record(self.delete_endpoint(ep))

        LOG.info(
            "Cleanup on %s done: %d endpoints, %d on exited containers, %d on unknown containers, "
            "%d deleted, %d skipped, %d failed",
            hostname,
            stats.endpoints,
            stats.dead_matches,
            stats.missing_matches,
            stats.deleted,
            stats.skipped,
            stats.failed,
        )
        return stats
