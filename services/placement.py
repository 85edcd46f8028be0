# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).
"""Placement validation for devices mounted in a rack.

A device occupies the contiguous unit range ``[position_u - size_u + 1, position_u]``;
``position_u`` is the top unit and units are counted from 1 at the bottom of the rack.
Everything in this module is pure so it can run on every pointer move of a drag.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Literal

from models import Device, Rack, occupied_range, ranges_intersect

logger = logging.getLogger(__name__)

PlacementReason = Literal["ok", "out_of_bounds", "overlap"]


class PlacementError(ValueError):
    """Raised when a write would put a device outside its rack or on top of another."""

    def __init__(self, message: str, reason: PlacementReason, conflict_device_id: int | None = None):
        super().__init__(message)
        self.reason = reason
        self.conflict_device_id = conflict_device_id


@dataclass(frozen=True)
class PlacementCheck:
    valid: bool
    reason: PlacementReason
    bottom_u: int
    top_u: int
    conflict_device_id: int | None = None

    def describe(self) -> str:
        if self.reason == "out_of_bounds":
            return f"U{self.top_u}-U{self.bottom_u} does not fit in the rack"
        if self.reason == "overlap":
            return f"U{self.top_u}-U{self.bottom_u} overlaps device {self.conflict_device_id}"
        return f"U{self.top_u}-U{self.bottom_u} is free"

    def raise_for_invalid(self) -> None:
        if not self.valid:
            raise PlacementError(self.describe(), self.reason, self.conflict_device_id)


def check_placement(
    rack: Rack,
    devices: Iterable[Device],
    top_u: int,
    size_u: int,
    exclude_device_id: int | None = None,
) -> PlacementCheck:
    """Check a candidate slot against the bounds of ``rack`` and the devices mounted in it.

    Devices belonging to other racks are ignored, so the full device list may be passed
    for cross-rack moves. ``exclude_device_id`` removes the device being moved by identity.
    """
    bottom, top = occupied_range(top_u, size_u)
    if size_u < 1 or top > rack.size_u or bottom < 1:
        return PlacementCheck(False, "out_of_bounds", bottom, top)
    for device in devices:
        if device.rack_id != rack.id or device.id == exclude_device_id:
            continue
        if ranges_intersect((bottom, top), occupied_range(device.position_u, device.size_u)):
            return PlacementCheck(False, "overlap", bottom, top, device.id)
    return PlacementCheck(True, "ok", bottom, top)


def is_valid_placement(
    rack: Rack,
    devices: Iterable[Device],
    top_u: int,
    size_u: int,
    exclude_device_id: int | None = None,
) -> bool:
    return check_placement(rack, devices, top_u, size_u, exclude_device_id).valid


def first_fit_from_top(
    rack: Rack,
    devices: Iterable[Device],
    size_u: int,
    exclude_device_id: int | None = None,
) -> int | None:
    """Scan from the top-most unit downward and return the first valid top unit."""
    devices = list(devices)
    for top_u in range(rack.size_u, 0, -1):
        if is_valid_placement(rack, devices, top_u, size_u, exclude_device_id):
            return top_u
    logger.debug("no free %sU slot in rack %s", size_u, rack.id)
    return None
