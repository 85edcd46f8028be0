# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).
"""SVG rendering utilities for rack elevations and the network topology."""

from __future__ import annotations

from html import escape
from typing import Iterable

from models import Device, Rack
from services.interaction import UNIT_HEIGHT_PX, DragState
from services.occupancy import build_occupancy
from services.topology import TopologyGraph

RACK_WIDTH = 380
RAIL_WIDTH = 40
HEADER_HEIGHT = 30

TYPE_COLORS = {
    "server": "#58a6ff",
    "network": "#f85149",
    "storage": "#a371f7",
}

STATUS_COLORS = {
    "online": "#3fb950",
    "warning": "#d29922",
    "offline": "#f85149",
    "unknown": "#8b949e",
}

PREVIEW_COLORS = {True: "#3fb950", False: "#f85149"}

NODE_RADIUS = 26


def _unit_y(size_u: int, unit: int) -> int:
    return HEADER_HEIGHT + (size_u - unit) * UNIT_HEIGHT_PX


def _device_meta(device: Device) -> str:
    span = f"U{device.position_u}"
    if device.size_u > 1:
        span += f"-{device.bottom_u}"
    return f"{span} • {device.size_u}U"


def render_rack_svg(
    rack: Rack,
    devices: Iterable[Device],
    selected_device_id: int | None = None,
    drag: DragState | None = None,
) -> str:
    """Draw a rack top-down with its devices and, during a drag, the candidate overlay.

    The dragged device is left out of its original slot so it only shows as the preview.
    """
    drag = drag or DragState()
    occupancy = build_occupancy(
        rack.size_u,
        [d for d in devices if d.rack_id == rack.id],
        hidden_device_id=drag.hidden_device_id,
    )
    x0 = RAIL_WIDTH
    lines = [
        f'<text x="10" y="20" font-size="14">{escape(rack.name)} • {rack.size_u}U</text>',
        f'<rect x="{x0}" y="{HEADER_HEIGHT}" width="{RACK_WIDTH}" height="{rack.size_u * UNIT_HEIGHT_PX}" fill="#161b22" stroke="#30363d"/>',
    ]
    for row in occupancy.rows():
        y = _unit_y(rack.size_u, row.top_u)
        height = (row.top_u - row.bottom_u + 1) * UNIT_HEIGHT_PX
        if row.device is None:
            lines.append(
                f'<rect class="u-empty" data-u="{row.top_u}" x="{x0}" y="{y}" width="{RACK_WIDTH}" height="{height}" fill="none" stroke="#21262d"/>'
            )
            lines.append(
                f'<text x="8" y="{y + UNIT_HEIGHT_PX // 2 + 4}" font-size="10" fill="#555">U{row.top_u}</text>'
            )
            continue
        device = row.device
        stroke = "#ffffff" if device.id == selected_device_id else "#30363d"
        lines.append(
            f'<rect class="rack-unit type-{device.type}" data-device="{device.id}" x="{x0}" y="{y}" width="{RACK_WIDTH}" height="{height}" fill="#21262d" stroke="{stroke}"><title>{escape(device.name)}</title></rect>'
        )
        lines.append(
            f'<rect x="{x0}" y="{y}" width="6" height="{height}" fill="{TYPE_COLORS.get(device.type, "#8b949e")}"/>'
        )
        lines.append(
            f'<circle cx="{x0 + 18}" cy="{y + UNIT_HEIGHT_PX // 2}" r="4" fill="{STATUS_COLORS.get(device.status, STATUS_COLORS["unknown"])}"/>'
        )
        lines.append(
            f'<text x="{x0 + 30}" y="{y + 15}" font-size="12" fill="#f0f6fc">{escape(device.icon)} {escape(device.name)}</text>'
        )
        lines.append(
            f'<text x="{x0 + 30}" y="{y + 28}" font-size="9" fill="#8b949e">{_device_meta(device)}</text>'
        )
        lines.append(
            f'<text x="8" y="{y + UNIT_HEIGHT_PX // 2 + 4}" font-size="10" fill="#555">U{row.top_u}</text>'
        )

    preview = drag.preview_for(rack.id)
    if preview is not None:
        top = min(preview.top_u, rack.size_u)
        bottom = max(preview.bottom_u, 1)
        color = PREVIEW_COLORS[preview.valid]
        lines.append(
            f'<rect class="drop-preview {"valid" if preview.valid else "invalid"}" x="{x0}" y="{_unit_y(rack.size_u, top)}" width="{RACK_WIDTH}" height="{(top - bottom + 1) * UNIT_HEIGHT_PX}" fill="{color}" fill-opacity="0.35" stroke="{color}"/>'
        )

    height = HEADER_HEIGHT + rack.size_u * UNIT_HEIGHT_PX + 10
    width = RAIL_WIDTH + RACK_WIDTH + 10
    return f'<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}">{"".join(lines)}</svg>'


def render_topology_svg(graph: TopologyGraph) -> str:
    """Draw an already laid out graph; nodes without coordinates are skipped."""
    placed = {n.id: n for n in graph.nodes if n.x is not None and n.y is not None}
    lines = ['<text x="10" y="20" font-size="14">Network Topology</text>']
    for edge in graph.edges:
        a = placed.get(edge.source)
        b = placed.get(edge.target)
        if a is None or b is None:
            continue
        dash = f' stroke-dasharray="{edge.dash}"' if edge.dash else ""
        label = " ".join(part for part in (edge.speed, edge.connection_type) if part)
        lines.append(
            f'<line x1="{a.x}" y1="{a.y}" x2="{b.x}" y2="{b.y}" stroke="{edge.color}" stroke-width="{edge.width}"{dash}><title>{escape(label)}</title></line>'
        )
    for node in placed.values():
        stroke = "#ffffff" if node.selected else TYPE_COLORS.get(node.type, "#8b949e")
        if node.pending_connection:
            stroke = "#d29922"
        classes = "node" + (" inter-rack" if node.inter_rack else "")
        lines.append(
            f'<circle class="{classes}" data-device="{node.id}" cx="{node.x}" cy="{node.y}" r="{NODE_RADIUS}" fill="#161b22" stroke="{stroke}" stroke-width="{3 if node.selected else 2}"/>'
        )
        lines.append(
            f'<circle cx="{node.x + NODE_RADIUS - 6}" cy="{node.y - NODE_RADIUS + 6}" r="4" fill="{STATUS_COLORS.get(node.status, STATUS_COLORS["unknown"])}"/>'
        )
        lines.append(
            f'<text x="{node.x}" y="{node.y + NODE_RADIUS + 14}" font-size="11" text-anchor="middle" fill="#c9d1d9">{escape(node.name)}</text>'
        )
        lines.append(
            f'<text x="{node.x}" y="{node.y + NODE_RADIUS + 26}" font-size="9" text-anchor="middle" fill="#8b949e">{escape(node.rack_name)}</text>'
        )
    width = int(max([n.x for n in placed.values()], default=0) + 120)
    height = int(max([n.y for n in placed.values()], default=0) + 80)
    return f'<svg xmlns="http://www.w3.org/2000/svg" width="{max(width, 300)}" height="{max(height, 120)}">{"".join(lines)}</svg>'
