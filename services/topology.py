# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).
"""Build the node/edge graph of devices and their network connections."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from models import Connection, Device, Rack

logger = logging.getLogger(__name__)

# Highest first: "10g" and "1g" are substrings of "100g".
SPEED_STYLES: tuple[tuple[str, str, float], ...] = (
    ("100g", "#a371f7", 5.0),
    ("25g", "#f85149", 4.0),
    ("10g", "#58a6ff", 3.0),
    ("1g", "#3fb950", 2.0),
)
DEFAULT_EDGE_STYLE = ("#8b949e", 1.5)
INTER_RACK_DASH = "6,4"


def speed_style(speed: str | None) -> tuple[str, float]:
    """Return ``(color, width)`` for a link speed label such as ``"10GbE"``."""
    normalized = str(speed or "").lower().replace(" ", "")
    for token, color, width in SPEED_STYLES:
        if token in normalized:
            return color, width
    return DEFAULT_EDGE_STYLE


@dataclass
class GraphNode:
    id: int
    name: str
    type: str
    status: str
    rack_id: int
    rack_name: str
    icon: str = ""
    inter_rack: bool = False
    selected: bool = False
    pending_connection: bool = False
    x: float | None = None
    y: float | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "status": self.status,
            "rack_id": self.rack_id,
            "rack_name": self.rack_name,
            "icon": self.icon,
            "inter_rack": self.inter_rack,
            "selected": self.selected,
            "pending_connection": self.pending_connection,
            "x": self.x,
            "y": self.y,
        }


@dataclass
class GraphEdge:
    id: int
    source: int
    target: int
    speed: str | None
    connection_type: str | None
    port_info: str | None
    inter_rack: bool
    color: str
    width: float

    @property
    def dash(self) -> str | None:
        return INTER_RACK_DASH if self.inter_rack else None

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "speed": self.speed,
            "connection_type": self.connection_type or "",
            "port_info": self.port_info or "",
            "inter_rack": self.inter_rack,
            "color": self.color,
            "width": self.width,
            "dash": self.dash,
        }


@dataclass
class TopologyGraph:
    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)

    def node(self, node_id: int) -> GraphNode | None:
        return next((n for n in self.nodes if n.id == node_id), None)

    def shape_key(self) -> str:
        """Identity of the node and edge sets; changes when devices or links are added or removed."""
        node_part = ",".join(str(n.id) for n in self.nodes)
        edge_part = ",".join(f"{e.source}>{e.target}" for e in self.edges)
        return f"{node_part}|{edge_part}"

    def as_dict(self) -> dict[str, Any]:
        return {
            "nodes": [n.as_dict() for n in self.nodes],
            "edges": [e.as_dict() for e in self.edges],
            "dropped": list(self.dropped),
        }


def build_graph(
    devices: Iterable[Device],
    racks: Iterable[Rack],
    connections: Iterable[Connection],
    selected_id: int | None = None,
    pending_id: int | None = None,
) -> TopologyGraph:
    rack_names = {rack.id: rack.name for rack in racks}
    unique: dict[int, Device] = {}
    for device in devices:
        unique.setdefault(device.id, device)

    graph = TopologyGraph()
    for device in sorted(unique.values(), key=lambda d: d.id):
        graph.nodes.append(
            GraphNode(
                id=device.id,
                name=device.name,
                type=device.type,
                status=device.status,
                rack_id=device.rack_id,
                rack_name=rack_names.get(device.rack_id, f"Rack {device.rack_id}"),
                icon=device.icon,
                selected=device.id == selected_id,
                pending_connection=device.id == pending_id,
            )
        )
    nodes = {node.id: node for node in graph.nodes}

    for conn in sorted(connections, key=lambda c: c.id):
        source = unique.get(conn.source_device_id)
        target = unique.get(conn.target_device_id)
        if source is None or target is None:
            note = (
                f"connection {conn.id} dropped: device "
                f"{conn.source_device_id if source is None else conn.target_device_id} not found"
            )
            logger.warning(note)
            graph.dropped.append(note)
            continue
        inter_rack = source.rack_id != target.rack_id
        color, width = speed_style(conn.speed)
        graph.edges.append(
            GraphEdge(
                id=conn.id,
                source=source.id,
                target=target.id,
                speed=conn.speed,
                connection_type=conn.connection_type,
                port_info=conn.port_info,
                inter_rack=inter_rack,
                color=color,
                width=width,
            )
        )
        if inter_rack:
            nodes[source.id].inter_rack = True
            nodes[target.id].inter_rack = True
    return graph
