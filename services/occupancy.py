# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).
"""Per-unit occupancy of a rack derived from its device list."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Literal

from models import Device

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OccupancyConflict:
    kind: Literal["overlap", "out_of_bounds"]
    unit: int | None
    device_ids: tuple[int, ...]


@dataclass(frozen=True)
class ElevationRow:
    """One visual row of a rack elevation: a free unit or a whole device span."""

    top_u: int
    bottom_u: int
    device: Device | None = None

    @property
    def is_empty(self) -> bool:
        return self.device is None


@dataclass
class Occupancy:
    size_u: int
    units: dict[int, int | None]
    devices: dict[int, Device] = field(default_factory=dict)
    conflicts: list[OccupancyConflict] = field(default_factory=list)

    def occupant(self, unit: int) -> int | None:
        return self.units.get(unit)

    def is_free(self, unit: int) -> bool:
        return 1 <= unit <= self.size_u and self.units[unit] is None

    def free_ranges(self) -> list[tuple[int, int]]:
        """Maximal free ``(bottom, top)`` ranges, highest first."""
        ranges: list[tuple[int, int]] = []
        top: int | None = None
        for unit in range(self.size_u, 0, -1):
            if self.units[unit] is None:
                if top is None:
                    top = unit
            elif top is not None:
                ranges.append((unit + 1, top))
                top = None
        if top is not None:
            ranges.append((1, top))
        return ranges

    def occupied_ranges(self) -> dict[int, tuple[int, int]]:
        spans: dict[int, tuple[int, int]] = {}
        for unit in range(1, self.size_u + 1):
            device_id = self.units[unit]
            if device_id is None:
                continue
            low, high = spans.get(device_id, (unit, unit))
            spans[device_id] = (min(low, unit), max(high, unit))
        return spans

    def rows(self) -> list[ElevationRow]:
        """Top-down rows for rendering, a multi-unit device collapsed into one row."""
        rows: list[ElevationRow] = []
        unit = self.size_u
        while unit >= 1:
            device_id = self.units[unit]
            if device_id is None:
                rows.append(ElevationRow(unit, unit))
                unit -= 1
                continue
            bottom = unit
            while bottom - 1 >= 1 and self.units[bottom - 1] == device_id:
                bottom -= 1
            rows.append(ElevationRow(unit, bottom, self.devices[device_id]))
            unit = bottom - 1
        return rows

    def as_dict(self) -> dict[str, Any]:
        return {
            "size_u": self.size_u,
            "units": [
                {"u": unit, "device_id": self.units[unit]} for unit in range(self.size_u, 0, -1)
            ],
            "free_ranges": [list(r) for r in self.free_ranges()],
            "occupied_ranges": {str(k): list(v) for k, v in self.occupied_ranges().items()},
            "conflicts": [
                {"kind": c.kind, "unit": c.unit, "device_ids": list(c.device_ids)}
                for c in self.conflicts
            ],
        }


def build_occupancy(
    size_u: int, devices: Iterable[Device], hidden_device_id: int | None = None
) -> Occupancy:
    """Map every unit ``1..size_u`` to the device occupying it, or ``None``.

    Overlapping or out-of-bounds input is tolerated: the device placed first (highest
    top unit) keeps a contested unit and the clash is recorded in ``conflicts``.
    ``hidden_device_id`` leaves a device out entirely, e.g. while it is being dragged.
    """
    occupancy = Occupancy(size_u=size_u, units={unit: None for unit in range(1, size_u + 1)})
    ordered = sorted(devices, key=lambda d: (-d.position_u, d.id))
    for device in ordered:
        if device.id == hidden_device_id:
            continue
        occupancy.devices[device.id] = device
        bottom = device.position_u - device.size_u + 1
        if device.position_u > size_u or bottom < 1:
            occupancy.conflicts.append(OccupancyConflict("out_of_bounds", None, (device.id,)))
        for unit in range(max(bottom, 1), min(device.position_u, size_u) + 1):
            holder = occupancy.units[unit]
            if holder is None:
                occupancy.units[unit] = device.id
            else:
                occupancy.conflicts.append(OccupancyConflict("overlap", unit, (holder, device.id)))
    if occupancy.conflicts:
        logger.warning("rack occupancy has %d conflict(s)", len(occupancy.conflicts))
    return occupancy
