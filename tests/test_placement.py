# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).
from __future__ import annotations

import pytest

from conftest import device, rack
from services.placement import (
    PlacementError,
    check_placement,
    first_fit_from_top,
    is_valid_placement,
    ranges_intersect,
)


def test_ranges_intersect_edges() -> None:
    assert ranges_intersect((4, 5), (5, 8))
    assert ranges_intersect((1, 10), (3, 4))
    assert not ranges_intersect((1, 3), (4, 6))
    assert not ranges_intersect((7, 9), (4, 6))


def test_overlap_is_reported_instead_of_bounds() -> None:
    r = rack(size_u=10)
    a = device(1, position_u=10, size_u=2)
    check = check_placement(r, [a], top_u=9, size_u=3, exclude_device_id=2)
    assert check.valid is False
    assert check.reason == "overlap"
    assert check.conflict_device_id == 1
    assert (check.bottom_u, check.top_u) == (7, 9)


@pytest.mark.parametrize(("top_u", "size_u"), [(11, 1), (2, 3), (0, 1)])
def test_out_of_bounds(top_u: int, size_u: int) -> None:
    check = check_placement(rack(size_u=10), [], top_u, size_u)
    assert not check.valid
    assert check.reason == "out_of_bounds"


def test_device_revalidates_at_its_own_slot() -> None:
    r = rack(size_u=10)
    a = device(1, position_u=10, size_u=2)
    b = device(2, position_u=5, size_u=1)
    assert is_valid_placement(r, [a, b], 10, 2, exclude_device_id=1)
    assert not is_valid_placement(r, [a, b], 10, 2)


def test_validation_is_pure() -> None:
    r = rack(size_u=10)
    devices = [device(1, position_u=10, size_u=2)]
    results = {is_valid_placement(r, devices, 5, 2, exclude_device_id=1) for _ in range(5)}
    assert results == {True}
    assert devices[0].position_u == 10


def test_cross_rack_move_checks_target_rack_only() -> None:
    target = rack(rack_id=2, size_u=10)
    devices = [
        device(1, position_u=5, size_u=1, rack_id=1),
        device(2, position_u=10, size_u=1, rack_id=2),
    ]
    assert is_valid_placement(target, devices, 5, 1, exclude_device_id=1)
    assert not is_valid_placement(target, devices, 10, 1, exclude_device_id=1)


def test_first_fit_scans_from_top() -> None:
    r = rack(size_u=10)
    devices = [device(1, position_u=10, size_u=2), device(2, position_u=7, size_u=1)]
    assert first_fit_from_top(r, devices, 1) == 8
    assert first_fit_from_top(r, devices, 2) == 6
    assert first_fit_from_top(r, devices, 11) is None


def test_raise_for_invalid_carries_reason() -> None:
    check = check_placement(rack(size_u=4), [device(1, position_u=4)], 4, 1)
    with pytest.raises(PlacementError) as excinfo:
        check.raise_for_invalid()
    assert excinfo.value.reason == "overlap"
    assert excinfo.value.conflict_device_id == 1
