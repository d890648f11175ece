"""The ``job`` context available to expressions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass
class ContainerInfo:
    """Identity of the job container."""

    id: str = ""
    network: str = ""


@dataclass
class ServiceInfo:
    """Identity of a service container."""

    id: str = ""


@dataclass
class JobContext:
    """Status, container and services of the running job."""

    status: str = ""
    container: ContainerInfo = field(default_factory=ContainerInfo)
    services: dict[str, ServiceInfo] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "JobContext":
        """Build a context from its JSON-shaped mapping."""
        container = data.get("container") or {}
        services = data.get("services") or {}
        return cls(
            status=data.get("status") or "",
            container=ContainerInfo(
                id=container.get("id") or "",
                network=container.get("network") or "",
            ),
            services={
                name: ServiceInfo(id=(service or {}).get("id") or "")
                for name, service in services.items()
            },
        )