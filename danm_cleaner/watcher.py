from __future__ import annotations

import logging

from .docker_ops import ContainerRuntime
from .errors import SubscriptionError
from .models import ContainerEvent
from .reconciler import DeleteOutcome, Reconciler
from .registry import EndpointRegistry
from .settings import Settings, settings as default_settings

LOG = logging.getLogger(__name__)

# Terminal actions seen for a sandbox: graceful stop, forced kill, OOM die, removal.
TEARDOWN_ACTIONS = frozenset({"kill", "die", "stop", "destroy"})


class EventWatcher:
    """Deletes the endpoints of pod sandboxes as soon as docker reports them dying.

    Under normal pod teardown the CNI delete has already removed the endpoints
    before these events fire; this is the safety net for everything else.
    """

    def __init__(
        self,
        reconciler: Reconciler,
        registry: EndpointRegistry,
        runtime: ContainerRuntime,
        cfg: Settings | None = None,
    ):
        self.reconciler = reconciler
        self.registry = registry
        self.runtime = runtime
        self.cfg = cfg or default_settings

    def watch(self) -> None:
        """Process events until the stream fails. Always raises ``SubscriptionError``."""
        with self.runtime.subscribe_events() as events:
            LOG.info("Connected to container event stream")
            for event in events:
                try:
                    self.process_event(event)
                except Exception:
                    LOG.exception("Handling %s event for %s failed", event.action, event.actor_id)
        raise SubscriptionError("Container event stream closed")

    def process_event(self, event: ContainerEvent) -> list[DeleteOutcome]:
        if event.category != "container":
            return []
        # Only the sandbox owns the network namespace; app containers share it.
        if not event.is_pod_sandbox(self.cfg.sandbox_label, self.cfg.sandbox_value):
            return []
        if event.action not in TEARDOWN_ACTIONS:
            return []

        try:
            eps = self.registry.list_endpoints_by_cid(event.actor_id)
        except Exception as e:
            LOG.error("Looking up endpoints of container %s failed: %s: %s", event.actor_id, type(e).__name__, e)
            return []
        if not eps:
            LOG.debug("No endpoints left for %s container %s", event.action, event.actor_id)
            return []
        LOG.info(
            "Container %s %s, cleaning endpoints: %s",
            event.actor_id,
            event.action,
            ", ".join(f"{ep.namespace}/{ep.name}" for ep in eps),
        )
        return [self.reconciler.delete_endpoint(ep) for ep in eps]
