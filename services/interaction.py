# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).
"""Drag-and-drop placement state machine and the two-click connection linker.

The placement flow is a reducer: ``reduce(state, event, catalog)`` returns the next
state and, at most once per gesture, a ``MoveCommand``. ``PlacementController`` wraps
the reducer with the bookkeeping for commits that complete asynchronously.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterable, Union

from models import Device, Rack
from services.occupancy import build_occupancy
from services.placement import check_placement, first_fit_from_top

logger = logging.getLogger(__name__)

UNIT_HEIGHT_PX = 34


class DragStateError(RuntimeError):
    """Raised when a drag state is missing the fields its phase requires."""


class Phase(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    PREVIEWING = "previewing"
    COMMITTED = "committed"
    CANCELLED = "cancelled"


ACTIVE_PHASES = {Phase.DRAGGING, Phase.PREVIEWING}


@dataclass(frozen=True)
class DragStart:
    device_id: int


@dataclass(frozen=True)
class DragOver:
    rack_id: int
    offset_y: float


@dataclass(frozen=True)
class DragLeave:
    rack_id: int


@dataclass(frozen=True)
class Drop:
    rack_id: int | None


@dataclass(frozen=True)
class Cancel:
    pass


Event = Union[DragStart, DragOver, DragLeave, Drop, Cancel]


@dataclass(frozen=True)
class MoveCommand:
    gesture_id: int
    device_id: int
    source_rack_id: int
    target_rack_id: int
    target_top_u: int

    @property
    def rack_changed(self) -> bool:
        return self.source_rack_id != self.target_rack_id

    def payload(self) -> dict[str, int]:
        data = {"position_u": self.target_top_u}
        if self.rack_changed:
            data["rack_id"] = self.target_rack_id
        return data


@dataclass(frozen=True)
class CreateDeviceSignal:
    rack_id: int
    position_u: int


@dataclass(frozen=True)
class ConnectionCommand:
    source_device_id: int
    target_device_id: int


@dataclass(frozen=True)
class Preview:
    rack_id: int
    top_u: int
    bottom_u: int
    valid: bool


@dataclass(frozen=True)
class DragState:
    phase: Phase = Phase.IDLE
    gesture_id: int = 0
    device_id: int | None = None
    size_u: int = 0
    source_rack_id: int | None = None
    target_rack_id: int | None = None
    candidate_top_u: int | None = None
    candidate_bottom_u: int | None = None
    valid: bool = False
    reason: str | None = None

    @property
    def active(self) -> bool:
        return self.phase in ACTIVE_PHASES

    @property
    def hidden_device_id(self) -> int | None:
        """Device whose original slot must not be drawn while it is being dragged."""
        return self.device_id if self.active else None

    def preview_for(self, rack_id: int) -> Preview | None:
        if self.phase is not Phase.PREVIEWING or self.target_rack_id != rack_id:
            return None
        if self.candidate_top_u is None or self.candidate_bottom_u is None:
            raise DragStateError(f"previewing gesture {self.gesture_id} has no candidate slot")
        return Preview(rack_id, self.candidate_top_u, self.candidate_bottom_u, self.valid)

    def as_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "gesture_id": self.gesture_id,
            "device_id": self.device_id,
            "size_u": self.size_u,
            "source_rack_id": self.source_rack_id,
            "target_rack_id": self.target_rack_id,
            "candidate_top_u": self.candidate_top_u,
            "candidate_bottom_u": self.candidate_bottom_u,
            "valid": self.valid,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DragState":
        return cls(**{**data, "phase": Phase(data.get("phase", "idle"))})


class RackCatalog:
    """Read-only snapshot of racks and devices consulted by the reducer."""

    def __init__(self, racks: Iterable[Rack], devices: Iterable[Device]):
        self.racks = {rack.id: rack for rack in racks}
        self.devices = list(devices)
        self._by_id = {device.id: device for device in self.devices}

    def rack(self, rack_id: int | None) -> Rack | None:
        return self.racks.get(rack_id) if rack_id is not None else None

    def device(self, device_id: int) -> Device | None:
        return self._by_id.get(device_id)

    def devices_in(self, rack_id: int) -> list[Device]:
        return [d for d in self.devices if d.rack_id == rack_id]


def unit_at_offset(size_u: int, offset_y: float, unit_height: int = UNIT_HEIGHT_PX) -> int:
    """Map a pixel offset from the top edge of a rack frame to a unit number."""
    unit = size_u - int(offset_y // unit_height)
    return max(1, min(size_u, unit))


def _idle(state: DragState) -> DragState:
    return DragState(gesture_id=state.gesture_id)


def _commit(state: DragState, rack_id: int, top_u: int) -> tuple[DragState, MoveCommand]:
    if state.device_id is None or state.source_rack_id is None:
        raise DragStateError(f"gesture {state.gesture_id} has no dragged device to commit")
    command = MoveCommand(state.gesture_id, state.device_id, state.source_rack_id, rack_id, top_u)
    return replace(state, phase=Phase.COMMITTED), command


def reduce(
    state: DragState, event: Event, catalog: RackCatalog
) -> tuple[DragState, MoveCommand | None]:
    if isinstance(event, DragStart):
        device = catalog.device(event.device_id)
        if device is None:
            logger.info("drag start for unknown device %s ignored", event.device_id)
            return state, None
        started = DragState(
            phase=Phase.DRAGGING,
            gesture_id=state.gesture_id + 1,
            device_id=device.id,
            size_u=device.size_u,
            source_rack_id=device.rack_id,
        )
        return started, None

    if not state.active:
        # drops and moves after the gesture ended must not commit twice
        return state, None

    if isinstance(event, DragOver):
        rack = catalog.rack(event.rack_id)
        if rack is None:
            return state, None
        top_u = unit_at_offset(rack.size_u, event.offset_y)
        check = check_placement(rack, catalog.devices, top_u, state.size_u, state.device_id)
        previewing = replace(
            state,
            phase=Phase.PREVIEWING,
            target_rack_id=rack.id,
            candidate_top_u=check.top_u,
            candidate_bottom_u=check.bottom_u,
            valid=check.valid,
            reason=check.reason,
        )
        return previewing, None

    if isinstance(event, DragLeave):
        if state.phase is Phase.PREVIEWING and state.target_rack_id == event.rack_id:
            return _clear_candidate(state), None
        return state, None

    if isinstance(event, Cancel):
        return replace(_clear_candidate(state), phase=Phase.CANCELLED), None

    if isinstance(event, Drop):
        rack = catalog.rack(event.rack_id)
        if rack is None:
            return replace(_clear_candidate(state), phase=Phase.CANCELLED), None
        if state.phase is Phase.PREVIEWING and state.target_rack_id == rack.id:
            if not state.valid:
                logger.debug("drop rejected: %s", state.reason)
                return _idle(state), None
            if state.candidate_top_u is None:
                raise DragStateError(f"gesture {state.gesture_id} dropped without a candidate slot")
            return _commit(state, rack.id, state.candidate_top_u)
        # TODO: confirm with product whether an untracked drop should be rejected outright
        top_u = first_fit_from_top(rack, catalog.devices, state.size_u, state.device_id)
        if top_u is None:
            logger.info("drop on rack %s rejected: no free %sU slot", rack.id, state.size_u)
            return _idle(state), None
        return _commit(state, rack.id, top_u)

    raise TypeError(f"unsupported placement event: {event!r}")


def _clear_candidate(state: DragState) -> DragState:
    return replace(
        state,
        phase=Phase.DRAGGING,
        target_rack_id=None,
        candidate_top_u=None,
        candidate_bottom_u=None,
        valid=False,
        reason=None,
    )


@dataclass
class PlacementController:
    """Placement state for one display surface plus in-flight commit bookkeeping."""

    state: DragState = field(default_factory=DragState)
    pending_commits: set[int] = field(default_factory=set)
    error: str | None = None

    def dispatch(self, event: Event, catalog: RackCatalog) -> MoveCommand | None:
        self.state, command = reduce(self.state, event, catalog)
        if command is not None:
            self.pending_commits.add(command.gesture_id)
        return command

    def commit_finished(self, gesture_id: int, error: str | None = None) -> None:
        # a newer drag may already be running; only the commit bookkeeping changes
        self.pending_commits.discard(gesture_id)
        if error is not None:
            logger.warning("move commit for gesture %s failed: %s", gesture_id, error)
            self.error = error

    def dismiss_error(self) -> None:
        self.error = None

    def click_unit(self, rack: Rack, devices: Iterable[Device], unit: int) -> CreateDeviceSignal | None:
        if self.state.active:
            return None
        occupancy = build_occupancy(rack.size_u, [d for d in devices if d.rack_id == rack.id])
        if not occupancy.is_free(unit):
            return None
        return CreateDeviceSignal(rack.id, unit)

    def as_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.as_dict(),
            "pending_commits": sorted(self.pending_commits),
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "PlacementController":
        if not data:
            return cls()
        return cls(
            state=DragState.from_dict(data["state"]),
            pending_commits=set(data.get("pending_commits", [])),
            error=data.get("error"),
        )


@dataclass
class ConnectionLinker:
    """Pick a source node, then a target node, to request a new connection."""

    source_device_id: int | None = None

    def select(self, device_id: int) -> ConnectionCommand | None:
        if self.source_device_id is None:
            self.source_device_id = device_id
            return None
        if self.source_device_id == device_id:
            self.source_device_id = None
            return None
        command = ConnectionCommand(self.source_device_id, device_id)
        self.source_device_id = None
        return command

    def cancel(self) -> None:
        self.source_device_id = None
