# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).

from __future__ import annotations

from typing import Any

import pytest

from db import Database
from models import Connection, Device, Rack


def rack(rack_id: int = 1, size_u: int = 10, name: str | None = None) -> Rack:
    return Rack(id=rack_id, name=name or f"Rack {rack_id}", size_u=size_u)


def device(
    device_id: int, position_u: int, size_u: int = 1, rack_id: int = 1, **extra: Any
) -> Device:
    return Device(
        id=device_id,
        rack_id=rack_id,
        name=extra.pop("name", f"dev-{device_id}"),
        position_u=position_u,
        size_u=size_u,
        **extra,
    )


def link(conn_id: int, source: int, target: int, speed: str | None = None) -> Connection:
    return Connection(id=conn_id, source_device_id=source, target_device_id=target, speed=speed)


INVENTORY_YAML = """
version: 1
racks:
  - {id: 1, name: Rack A, size_u: 10}
  - {id: 2, name: Rack B, size_u: 12}
devices:
  - {id: 1, rack_id: 1, name: core-sw, type: network, position_u: 10, size_u: 2, status: online}
  - {id: 2, rack_id: 1, name: web-01, type: server, position_u: 6, size_u: 1}
  - {id: 3, rack_id: 2, name: nas, type: storage, position_u: 4, size_u: 3, status: warning, specs: {capacity: 48TB, raid: "6"}}
connections:
  - {id: 1, source_device_id: 1, target_device_id: 2, speed: 10GbE, connection_type: ethernet}
  - {id: 2, source_device_id: 1, target_device_id: 3, speed: 25G, connection_type: fiber}
"""


@pytest.fixture
def database(tmp_path) -> Database:
    db = Database(str(tmp_path / "rackview.db"))
    db.init_db()
    return db


@pytest.fixture
def client(tmp_path):
    from app import create_app

    app = create_app({"RACKVIEW_DB": str(tmp_path / "app.db"), "TESTING": True})
    return app.test_client()
