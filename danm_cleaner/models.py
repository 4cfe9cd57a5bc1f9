from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .settings import settings


class EndpointRecord(BaseModel):
    """One DanmEp: a network attachment of a single container."""

    model_config = ConfigDict(frozen=True)

    namespace: str
    name: str
    network_id: str = Field(..., description="Name of the owning DanmNet")
    network_type: str = ""
    cid: str = Field("", description="Container id of the pod sandbox")
    host: str = ""
    address: str = Field("", description="Assigned IPv4 address, usually in CIDR form")
    pod: str = ""
    resource_version: str = ""

    @classmethod
    def from_object(cls, obj: dict[str, Any]) -> "EndpointRecord":
        meta = obj.get("metadata") or {}
        spec = obj.get("spec") or {}
        iface = spec.get("Interface") or {}
        return cls(
            namespace=meta.get("namespace") or "",
            name=meta["name"],
            network_id=spec["NetworkID"],
            network_type=spec.get("NetworkType") or "",
            cid=spec.get("CID") or "",
            host=spec.get("Host") or "",
            address=iface.get("Address") or "",
            pod=spec.get("Pod") or "",
            resource_version=meta.get("resourceVersion") or "",
        )


class NetworkDefinition(BaseModel):
    """One DanmNet. ``raw`` keeps the full object for write-back."""

    namespace: str
    name: str
    network_id: str = ""
    network_type: str = ""
    cidr: str = ""
    alloc: str = Field("", description="base64 allocation bitmap")
    resource_version: str = ""
    raw: dict[str, Any] = Field(default_factory=dict, repr=False)

    @classmethod
    def from_object(cls, obj: dict[str, Any]) -> "NetworkDefinition":
        meta = obj.get("metadata") or {}
        spec = obj.get("spec") or {}
        options = spec.get("Options") or {}
        return cls(
            namespace=meta.get("namespace") or "",
            name=meta["name"],
            network_id=spec.get("NetworkID") or "",
            network_type=spec.get("NetworkType") or "",
            cidr=options.get("cidr") or "",
            alloc=options.get("alloc") or "",
            resource_version=meta.get("resourceVersion") or "",
            raw=obj,
        )


class ContainerRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    status: str = ""


class ContainerEvent(BaseModel):
    """A Docker lifecycle notification, reduced to what the watcher needs."""

    model_config = ConfigDict(frozen=True)

    category: str = ""
    action: str = ""
    actor_id: str = ""
    actor_attributes: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_docker(cls, raw: dict[str, Any]) -> "ContainerEvent":
        actor = raw.get("Actor")
        if not isinstance(actor, dict):
            actor = {}
        attrs = actor.get("Attributes")
        if not isinstance(attrs, dict):
            attrs = {}
        action = raw.get("Action")
        category = raw.get("Type")
        if not action and not category:
            # Pre-1.22 daemons only report containers, via "status"/"id".
            action = raw.get("status")
            category = "container" if action else ""
        return cls(
            category=category if isinstance(category, str) else "",
            action=action.split(":", 1)[0].strip() if isinstance(action, str) else "",
            actor_id=str(actor.get("ID") or raw.get("id") or ""),
            actor_attributes={str(k): str(v) for k, v in attrs.items()},
        )

    def is_pod_sandbox(
        self, label: str = settings.sandbox_label, value: str = settings.sandbox_value
    ) -> bool:
        return self.actor_attributes.get(label) == value
