# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).
from __future__ import annotations

import pytest
import yaml

from conftest import INVENTORY_YAML
from db import Database, NotFoundError
from models import (
    ConnectionCreate,
    ConnectionUpdate,
    DeviceCreate,
    DeviceUpdate,
    InventoryInput,
    RackCreate,
    RackUpdate,
)
from services.occupancy import build_occupancy
from services.placement import PlacementError


def _seed(database: Database) -> None:
    database.import_inventory(InventoryInput.model_validate(yaml.safe_load(INVENTORY_YAML)))


def test_import_and_list(database: Database) -> None:
    _seed(database)
    assert [r.name for r in database.list_racks()] == ["Rack A", "Rack B"]
    assert [d.id for d in database.list_devices(1)] == [1, 2]
    assert len(database.list_connections()) == 2


def test_create_device_rejects_overlap(database: Database) -> None:
    _seed(database)
    with pytest.raises(PlacementError) as excinfo:
        database.create_device(
            DeviceCreate(rack_id=1, name="x", type="server", position_u=9, size_u=3)
        )
    assert excinfo.value.reason == "overlap"
    created = database.create_device(
        DeviceCreate(rack_id=1, name="y", type="server", position_u=8, size_u=2)
    )
    assert created.icon == "🖥️"


def test_move_device_within_rack_frees_old_units(database: Database) -> None:
    _seed(database)
    moved = database.move_device(1, position_u=5)
    assert (moved.rack_id, moved.position_u) == (1, 5)
    occupancy = build_occupancy(10, database.list_devices(1))
    assert occupancy.is_free(10) and occupancy.is_free(9)
    assert occupancy.occupant(5) == 1 and occupancy.occupant(4) == 1


def test_move_device_across_racks_validates_target(database: Database) -> None:
    _seed(database)
    with pytest.raises(PlacementError):
        database.move_device(2, position_u=3, rack_id=2)
    moved = database.move_device(2, position_u=12, rack_id=2)
    assert moved.rack_id == 2
    assert [d.id for d in database.list_devices(1)] == [1]


def test_failed_move_leaves_device_untouched(database: Database) -> None:
    _seed(database)
    with pytest.raises(PlacementError):
        database.move_device(2, position_u=11)
    assert database.get_device(2).position_u == 6


def test_update_device_size_is_validated(database: Database) -> None:
    _seed(database)
    with pytest.raises(PlacementError):
        database.update_device(2, DeviceUpdate(size_u=7))
    assert database.update_device(2, DeviceUpdate(status="offline")).status == "offline"


def test_shrinking_rack_surfaces_out_of_bounds_devices(database: Database) -> None:
    _seed(database)
    rack = database.update_rack(1, RackUpdate(size_u=8))
    occupancy = build_occupancy(rack.size_u, database.list_devices(1))
    assert [c.kind for c in occupancy.conflicts] == ["out_of_bounds"]


def test_connection_crud(database: Database) -> None:
    _seed(database)
    link = database.create_connection(
        ConnectionCreate(source_device_id=2, target_device_id=3, speed="1G")
    )
    updated = database.update_connection(link.id, ConnectionUpdate(port_info="eth0 -> eth1"))
    assert updated.port_info == "eth0 -> eth1"
    assert updated.speed == "1G"
    database.delete_connection(link.id)
    with pytest.raises(NotFoundError):
        database.get_connection(link.id)


def test_deleting_device_cascades_connections(database: Database) -> None:
    _seed(database)
    database.delete_device(1)
    assert database.list_connections() == []


def test_missing_ids_raise_not_found(database: Database) -> None:
    with pytest.raises(NotFoundError):
        database.get_rack(1)
    with pytest.raises(NotFoundError):
        database.move_device(1, position_u=1)
    rack = database.create_rack(RackCreate(name="lab", size_u=4))
    with pytest.raises(NotFoundError):
        database.create_connection(ConnectionCreate(source_device_id=1, target_device_id=2))
    database.delete_rack(rack.id)
    assert database.list_racks() == []


def test_connect_rolls_back_on_exception(database: Database) -> None:
    with pytest.raises(RuntimeError):
        with database.connect() as conn:
            conn.execute(
                "INSERT INTO rack(name,description,size_u,created_at,updated_at) VALUES(?,?,?,?,?)",
                ("r", "", 4, "2026-01-01T00:00:00+00:00", "2026-01-01T00:00:00+00:00"),
            )
            raise RuntimeError("boom")
    assert database.list_racks() == []


def test_device_specs_round_trip_and_replace(database: Database) -> None:
    _seed(database)
    assert database.get_device(3).specs == {"capacity": "48TB", "raid": "6"}
    assert database.list_devices(1)[0].specs == {}
    created = database.create_device(
        DeviceCreate(rack_id=1, name="db-01", type="server", position_u=4, specs={"cpu": "2x32c"})
    )
    assert created.specs == {"cpu": "2x32c"}
    renamed = database.update_device(created.id, DeviceUpdate(name="db-02"))
    assert renamed.specs == {"cpu": "2x32c"}
    replaced = database.update_device(created.id, DeviceUpdate(specs={"ram": "512G"}))
    assert replaced.specs == {"ram": "512G"}
    assert database.update_device(created.id, DeviceUpdate(specs={})).specs == {}


def test_deleting_device_drops_its_specs(database: Database) -> None:
    _seed(database)
    database.delete_device(3)
    with database.connect() as conn:
        rows = conn.execute("SELECT * FROM device_spec WHERE device_id=3").fetchall()
    assert rows == []
