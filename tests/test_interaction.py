# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).
from __future__ import annotations

import pytest

from conftest import device, rack
from services.interaction import (
    UNIT_HEIGHT_PX,
    Cancel,
    ConnectionLinker,
    DragLeave,
    DragOver,
    DragStart,
    DragState,
    DragStateError,
    Drop,
    Phase,
    PlacementController,
    RackCatalog,
    reduce,
    unit_at_offset,
)
from services.occupancy import build_occupancy


def _offset(size_u: int, unit: int) -> float:
    return (size_u - unit) * UNIT_HEIGHT_PX + UNIT_HEIGHT_PX / 2


@pytest.fixture
def catalog() -> RackCatalog:
    return RackCatalog(
        [rack(1, size_u=10), rack(2, size_u=10)],
        [
            device(1, position_u=10, size_u=2, rack_id=1),
            device(2, position_u=3, size_u=3, rack_id=2),
        ],
    )


def test_unit_at_offset_clamps_to_rack() -> None:
    assert unit_at_offset(10, 0) == 10
    assert unit_at_offset(10, 5 * UNIT_HEIGHT_PX + 1) == 5
    assert unit_at_offset(10, -80) == 10
    assert unit_at_offset(10, 10_000) == 1


def test_drag_start_captures_device_and_hides_its_slot(catalog: RackCatalog) -> None:
    state, command = reduce(DragState(), DragStart(1), catalog)
    assert command is None
    assert state.phase is Phase.DRAGGING
    assert state.device_id == 1
    assert state.size_u == 2
    assert state.hidden_device_id == 1


def test_move_within_rack_commits_once(catalog: RackCatalog) -> None:
    controller = PlacementController()
    controller.dispatch(DragStart(1), catalog)
    controller.dispatch(DragOver(1, _offset(10, 5)), catalog)
    preview = controller.state.preview_for(1)
    assert preview is not None
    assert preview.valid
    assert (preview.bottom_u, preview.top_u) == (4, 5)

    command = controller.dispatch(Drop(1), catalog)
    assert command is not None
    assert (command.device_id, command.target_rack_id, command.target_top_u) == (1, 1, 5)
    assert command.payload() == {"position_u": 5}
    assert controller.state.phase is Phase.COMMITTED
    assert controller.dispatch(Drop(1), catalog) is None

    moved = device(1, position_u=command.target_top_u, size_u=2, rack_id=1)
    occupancy = build_occupancy(10, [moved])
    assert occupancy.is_free(10) and occupancy.is_free(9)
    assert occupancy.occupant(5) == 1 and occupancy.occupant(4) == 1


def test_invalid_preview_refuses_commit(catalog: RackCatalog) -> None:
    state, _ = reduce(DragState(), DragStart(2), catalog)
    state, _ = reduce(state, DragOver(1, _offset(10, 9)), catalog)
    assert state.phase is Phase.PREVIEWING
    assert state.valid is False
    assert state.reason == "overlap"
    state, command = reduce(state, Drop(1), catalog)
    assert command is None
    assert state.phase is Phase.IDLE


def test_reentering_other_unit_revalidates(catalog: RackCatalog) -> None:
    state, _ = reduce(DragState(), DragStart(2), catalog)
    state, _ = reduce(state, DragOver(1, _offset(10, 9)), catalog)
    assert not state.valid
    state, _ = reduce(state, DragOver(1, _offset(10, 6)), catalog)
    assert state.valid
    assert (state.candidate_bottom_u, state.candidate_top_u) == (4, 6)


def test_cross_rack_drop_updates_rack_reference(catalog: RackCatalog) -> None:
    state, _ = reduce(DragState(), DragStart(2), catalog)
    state, _ = reduce(state, DragOver(1, _offset(10, 6)), catalog)
    _, command = reduce(state, Drop(1), catalog)
    assert command is not None
    assert command.rack_changed
    assert command.payload() == {"position_u": 6, "rack_id": 1}


def test_drop_without_preview_takes_first_free_slot_from_top(catalog: RackCatalog) -> None:
    state, _ = reduce(DragState(), DragStart(2), catalog)
    state, command = reduce(state, Drop(1), catalog)
    assert command is not None
    assert command.target_top_u == 8


def test_drop_without_preview_and_no_room_is_rejected() -> None:
    full = RackCatalog(
        [rack(1, size_u=2), rack(2, size_u=4)],
        [device(1, position_u=2, size_u=2, rack_id=1), device(2, position_u=4, size_u=1, rack_id=2)],
    )
    state, _ = reduce(DragState(), DragStart(2), full)
    state, command = reduce(state, Drop(1), full)
    assert command is None
    assert state.phase is Phase.IDLE


def test_drag_leave_then_drop_uses_fallback(catalog: RackCatalog) -> None:
    state, _ = reduce(DragState(), DragStart(2), catalog)
    state, _ = reduce(state, DragOver(1, _offset(10, 9)), catalog)
    state, _ = reduce(state, DragLeave(1), catalog)
    assert state.phase is Phase.DRAGGING
    assert state.preview_for(1) is None
    _, command = reduce(state, Drop(1), catalog)
    assert command is not None and command.target_top_u == 8


def test_drop_outside_any_rack_cancels(catalog: RackCatalog) -> None:
    state, _ = reduce(DragState(), DragStart(1), catalog)
    state, command = reduce(state, Drop(None), catalog)
    assert command is None
    assert state.phase is Phase.CANCELLED
    assert state.hidden_device_id is None


def test_cancel_and_events_while_idle_are_noops(catalog: RackCatalog) -> None:
    idle = DragState()
    assert reduce(idle, DragOver(1, 0), catalog) == (idle, None)
    assert reduce(idle, Drop(1), catalog) == (idle, None)
    state, _ = reduce(idle, DragStart(1), catalog)
    state, command = reduce(state, Cancel(), catalog)
    assert command is None
    assert state.phase is Phase.CANCELLED


def test_unknown_device_does_not_start_drag(catalog: RackCatalog) -> None:
    state, _ = reduce(DragState(), DragStart(99), catalog)
    assert state.phase is Phase.IDLE


def test_late_commit_failure_does_not_disturb_new_drag(catalog: RackCatalog) -> None:
    controller = PlacementController()
    controller.dispatch(DragStart(1), catalog)
    command = controller.dispatch(Drop(1), catalog)
    assert command is not None
    assert controller.pending_commits == {command.gesture_id}

    controller.dispatch(DragStart(2), catalog)
    controller.commit_finished(command.gesture_id, error="device 1 moved by someone else")
    assert controller.pending_commits == set()
    assert controller.state.phase is Phase.DRAGGING
    assert controller.state.device_id == 2
    assert controller.error == "device 1 moved by someone else"
    controller.dismiss_error()
    assert controller.error is None


def test_controller_survives_serialization(catalog: RackCatalog) -> None:
    controller = PlacementController()
    controller.dispatch(DragStart(2), catalog)
    controller.dispatch(DragOver(1, _offset(10, 9)), catalog)
    restored = PlacementController.from_dict(controller.as_dict())
    assert restored.state == controller.state
    assert PlacementController.from_dict(None).state == DragState()


def test_click_on_free_unit_signals_device_creation() -> None:
    r = rack(1, size_u=10)
    devices = [device(1, position_u=10, size_u=2)]
    controller = PlacementController()
    signal = controller.click_unit(r, devices, 5)
    assert signal is not None
    assert (signal.rack_id, signal.position_u) == (1, 5)
    assert controller.click_unit(r, devices, 9) is None
    assert controller.click_unit(r, devices, 11) is None


def test_connection_linker_two_clicks() -> None:
    linker = ConnectionLinker()
    assert linker.select(1) is None
    assert linker.source_device_id == 1
    command = linker.select(3)
    assert command is not None
    assert (command.source_device_id, command.target_device_id) == (1, 3)
    assert linker.source_device_id is None


def test_connection_linker_same_node_toggles_off() -> None:
    linker = ConnectionLinker()
    linker.select(4)
    assert linker.select(4) is None
    assert linker.source_device_id is None
    linker.select(5)
    linker.cancel()
    assert linker.source_device_id is None


def test_previewing_state_without_candidate_is_rejected(catalog: RackCatalog) -> None:
    broken = DragState(
        phase=Phase.PREVIEWING,
        gesture_id=3,
        device_id=1,
        size_u=2,
        source_rack_id=1,
        target_rack_id=1,
        valid=True,
    )
    with pytest.raises(DragStateError):
        broken.preview_for(1)
    with pytest.raises(DragStateError):
        reduce(broken, Drop(1), catalog)
