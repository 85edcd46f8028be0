# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).
"""SQLite persistence layer for racks, devices and network connections."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from models import (
    Connection,
    ConnectionCreate,
    ConnectionUpdate,
    Device,
    DeviceCreate,
    DeviceUpdate,
    InventoryInput,
    Rack,
    RackCreate,
    RackUpdate,
)
from services.placement import check_placement

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS rack (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  description TEXT NOT NULL DEFAULT '',
  size_u INTEGER NOT NULL CHECK (size_u > 0),
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS device (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  rack_id INTEGER NOT NULL,
  name TEXT NOT NULL,
  icon TEXT NOT NULL DEFAULT '',
  type TEXT NOT NULL,
  position_u INTEGER NOT NULL,
  size_u INTEGER NOT NULL CHECK (size_u > 0),
  status TEXT NOT NULL DEFAULT 'unknown',
  model TEXT NOT NULL DEFAULT '',
  ip_address TEXT,
  health_check_url TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL,
  FOREIGN KEY(rack_id) REFERENCES rack(id) ON DELETE CASCADE
);
CREATE TABLE IF NOT EXISTS device_spec (
  device_id INTEGER NOT NULL,
  spec_key TEXT NOT NULL,
  spec_value TEXT NOT NULL,
  PRIMARY KEY(device_id, spec_key),
  FOREIGN KEY(device_id) REFERENCES device(id) ON DELETE CASCADE
);
CREATE TABLE IF NOT EXISTS connection (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  source_device_id INTEGER NOT NULL,
  target_device_id INTEGER NOT NULL,
  connection_type TEXT,
  port_info TEXT,
  speed TEXT,
  created_at TEXT NOT NULL,
  FOREIGN KEY(source_device_id) REFERENCES device(id) ON DELETE CASCADE,
  FOREIGN KEY(target_device_id) REFERENCES device(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_device_rack ON device(rack_id, position_u);
CREATE INDEX IF NOT EXISTS idx_connection_source ON connection(source_device_id);
CREATE INDEX IF NOT EXISTS idx_connection_target ON connection(target_device_id);
"""

DEVICE_COLUMNS = (
    "id,rack_id,name,icon,type,position_u,size_u,status,model,ip_address,health_check_url"
)


class NotFoundError(LookupError):
    """Raised when a rack, device or connection id does not exist."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Database:
    def __init__(self, path: str = "rackview.db"):
        self.path = path

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_db(self) -> None:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        with self.connect() as conn:
            conn.executescript(SCHEMA)

    # racks

    def list_racks(self) -> list[Rack]:
        with self.connect() as conn:
            rows = conn.execute("SELECT id,name,description,size_u FROM rack ORDER BY id").fetchall()
        return [Rack.model_validate(dict(row)) for row in rows]

    def get_rack(self, rack_id: int) -> Rack:
        with self.connect() as conn:
            return self._get_rack(conn, rack_id)

    def _get_rack(self, conn: sqlite3.Connection, rack_id: int) -> Rack:
        row = conn.execute(
            "SELECT id,name,description,size_u FROM rack WHERE id=?", (rack_id,)
        ).fetchone()
        if row is None:
            raise NotFoundError(f"rack {rack_id} not found")
        return Rack.model_validate(dict(row))

    def create_rack(self, req: RackCreate) -> Rack:
        now = _now()
        with self.connect() as conn:
            cur = conn.execute(
                "INSERT INTO rack(name,description,size_u,created_at,updated_at) VALUES(?,?,?,?,?)",
                (req.name, req.description, req.size_u, now, now),
            )
            return self._get_rack(conn, cur.lastrowid)

    def update_rack(self, rack_id: int, req: RackUpdate) -> Rack:
        changes = req.model_dump(exclude_none=True)
        with self.connect() as conn:
            rack = self._get_rack(conn, rack_id)
            if not changes:
                return rack
            assignments = ",".join(f"{key}=?" for key in changes)
            conn.execute(
                f"UPDATE rack SET {assignments},updated_at=? WHERE id=?",
                (*changes.values(), _now(), rack_id),
            )
            updated = self._get_rack(conn, rack_id)
            if updated.size_u < rack.size_u:
                stranded = conn.execute(
                    "SELECT id FROM device WHERE rack_id=? AND position_u>?",
                    (rack_id, updated.size_u),
                ).fetchall()
                if stranded:
                    logger.warning(
                        "rack %s shrunk to %sU leaving device(s) %s out of bounds",
                        rack_id,
                        updated.size_u,
                        [row["id"] for row in stranded],
                    )
            return updated

    def delete_rack(self, rack_id: int) -> None:
        with self.connect() as conn:
            cur = conn.execute("DELETE FROM rack WHERE id=?", (rack_id,))
            if cur.rowcount == 0:
                raise NotFoundError(f"rack {rack_id} not found")

    # devices

    def list_devices(self, rack_id: int | None = None) -> list[Device]:
        with self.connect() as conn:
            return self._list_devices(conn, rack_id)

    def _list_devices(self, conn: sqlite3.Connection, rack_id: int | None = None) -> list[Device]:
        if rack_id is None:
            rows = conn.execute(
                f"SELECT {DEVICE_COLUMNS} FROM device ORDER BY rack_id, position_u DESC"
            ).fetchall()
        else:
            rows = conn.execute(
                f"SELECT {DEVICE_COLUMNS} FROM device WHERE rack_id=? ORDER BY position_u DESC",
                (rack_id,),
            ).fetchall()
        specs = self._load_specs(conn, [row["id"] for row in rows])
        return [
            Device.model_validate({**dict(row), "specs": specs.get(row["id"], {})}) for row in rows
        ]

    def _load_specs(self, conn: sqlite3.Connection, device_ids: list[int]) -> dict[int, dict[str, str]]:
        if not device_ids:
            return {}
        marks = ",".join("?" for _ in device_ids)
        rows = conn.execute(
            f"SELECT device_id,spec_key,spec_value FROM device_spec WHERE device_id IN ({marks}) ORDER BY spec_key",
            device_ids,
        ).fetchall()
        specs: dict[int, dict[str, str]] = {}
        for row in rows:
            specs.setdefault(row["device_id"], {})[row["spec_key"]] = row["spec_value"]
        return specs

    def _store_specs(self, conn: sqlite3.Connection, device_id: int, specs: dict[str, str]) -> None:
        """Replace every spec of ``device_id`` with ``specs``."""
        conn.execute("DELETE FROM device_spec WHERE device_id=?", (device_id,))
        conn.executemany(
            "INSERT INTO device_spec(device_id,spec_key,spec_value) VALUES(?,?,?)",
            [(device_id, key, value) for key, value in specs.items()],
        )

    def get_device(self, device_id: int) -> Device:
        with self.connect() as conn:
            return self._get_device(conn, device_id)

    def _get_device(self, conn: sqlite3.Connection, device_id: int) -> Device:
        row = conn.execute(
            f"SELECT {DEVICE_COLUMNS} FROM device WHERE id=?", (device_id,)
        ).fetchone()
        if row is None:
            raise NotFoundError(f"device {device_id} not found")
        specs = self._load_specs(conn, [device_id]).get(device_id, {})
        return Device.model_validate({**dict(row), "specs": specs})

    def _check_slot(
        self,
        conn: sqlite3.Connection,
        rack_id: int,
        position_u: int,
        size_u: int,
        exclude_device_id: int | None = None,
    ) -> None:
        rack = self._get_rack(conn, rack_id)
        devices = self._list_devices(conn, rack_id)
        check_placement(rack, devices, position_u, size_u, exclude_device_id).raise_for_invalid()

    def create_device(self, req: DeviceCreate) -> Device:
        now = _now()
        with self.connect() as conn:
            self._check_slot(conn, req.rack_id, req.position_u, req.size_u)
            cur = conn.execute(
                "INSERT INTO device(rack_id,name,icon,type,position_u,size_u,status,model,ip_address,health_check_url,created_at,updated_at) VALUES(?,?,?,?,?,?,?,?,?,?,?,?)",
                (
                    req.rack_id,
                    req.name,
                    req.icon or "🖥️",
                    req.type,
                    req.position_u,
                    req.size_u,
                    req.status,
                    req.model,
                    req.ip_address,
                    req.health_check_url,
                    now,
                    now,
                ),
            )
            self._store_specs(conn, cur.lastrowid, req.specs)
            return self._get_device(conn, cur.lastrowid)

    def update_device(self, device_id: int, req: DeviceUpdate) -> Device:
        changes = req.model_dump(exclude_none=True)
        specs = changes.pop("specs", None)
        with self.connect() as conn:
            current = self._get_device(conn, device_id)
            if specs is not None:
                self._store_specs(conn, device_id, specs)
            if not changes:
                return self._get_device(conn, device_id)
            if "position_u" in changes or "size_u" in changes:
                self._check_slot(
                    conn,
                    current.rack_id,
                    changes.get("position_u", current.position_u),
                    changes.get("size_u", current.size_u),
                    exclude_device_id=device_id,
                )
            self._write_device(conn, device_id, changes)
            return self._get_device(conn, device_id)

    def move_device(self, device_id: int, position_u: int, rack_id: int | None = None) -> Device:
        """Relocate a device, optionally into another rack, validating against the target rack."""
        with self.connect() as conn:
            current = self._get_device(conn, device_id)
            target_rack_id = current.rack_id if rack_id is None else rack_id
            self._check_slot(
                conn, target_rack_id, position_u, current.size_u, exclude_device_id=device_id
            )
            self._write_device(conn, device_id, {"position_u": position_u, "rack_id": target_rack_id})
            moved = self._get_device(conn, device_id)
        logger.info(
            "device %s moved to rack %s U%s", device_id, moved.rack_id, moved.position_u
        )
        return moved

    def _write_device(self, conn: sqlite3.Connection, device_id: int, changes: dict[str, Any]) -> None:
        assignments = ",".join(f"{key}=?" for key in changes)
        conn.execute(
            f"UPDATE device SET {assignments},updated_at=? WHERE id=?",
            (*changes.values(), _now(), device_id),
        )

    def delete_device(self, device_id: int) -> None:
        with self.connect() as conn:
            cur = conn.execute("DELETE FROM device WHERE id=?", (device_id,))
            if cur.rowcount == 0:
                raise NotFoundError(f"device {device_id} not found")

    # connections

    def list_connections(self) -> list[Connection]:
        with self.connect() as conn:
            rows = conn.execute(
                "SELECT id,source_device_id,target_device_id,speed,connection_type,port_info FROM connection ORDER BY id"
            ).fetchall()
        return [Connection.model_validate(dict(row)) for row in rows]

    def get_connection(self, connection_id: int) -> Connection:
        with self.connect() as conn:
            return self._get_connection(conn, connection_id)

    def _get_connection(self, conn: sqlite3.Connection, connection_id: int) -> Connection:
        row = conn.execute(
            "SELECT id,source_device_id,target_device_id,speed,connection_type,port_info FROM connection WHERE id=?",
            (connection_id,),
        ).fetchone()
        if row is None:
            raise NotFoundError(f"connection {connection_id} not found")
        return Connection.model_validate(dict(row))

    def create_connection(self, req: ConnectionCreate) -> Connection:
        with self.connect() as conn:
            self._get_device(conn, req.source_device_id)
            self._get_device(conn, req.target_device_id)
            cur = conn.execute(
                "INSERT INTO connection(source_device_id,target_device_id,connection_type,port_info,speed,created_at) VALUES(?,?,?,?,?,?)",
                (
                    req.source_device_id,
                    req.target_device_id,
                    req.connection_type,
                    req.port_info,
                    req.speed,
                    _now(),
                ),
            )
            return self._get_connection(conn, cur.lastrowid)

    def update_connection(self, connection_id: int, req: ConnectionUpdate) -> Connection:
        changes = req.model_dump(exclude_unset=True)
        with self.connect() as conn:
            self._get_connection(conn, connection_id)
            if changes:
                assignments = ",".join(f"{key}=?" for key in changes)
                conn.execute(
                    f"UPDATE connection SET {assignments} WHERE id=?",
                    (*changes.values(), connection_id),
                )
            return self._get_connection(conn, connection_id)

    def delete_connection(self, connection_id: int) -> None:
        with self.connect() as conn:
            cur = conn.execute("DELETE FROM connection WHERE id=?", (connection_id,))
            if cur.rowcount == 0:
                raise NotFoundError(f"connection {connection_id} not found")

    def import_inventory(self, inventory: InventoryInput) -> dict[str, int]:
        """Replace the whole inventory with an already validated document."""
        now = _now()
        with self.connect() as conn:
            conn.execute("DELETE FROM connection")
            conn.execute("DELETE FROM device_spec")
            conn.execute("DELETE FROM device")
            conn.execute("DELETE FROM rack")
            for rack in inventory.racks:
                conn.execute(
                    "INSERT INTO rack(id,name,description,size_u,created_at,updated_at) VALUES(?,?,?,?,?,?)",
                    (rack.id, rack.name, rack.description, rack.size_u, now, now),
                )
            for device in inventory.devices:
                conn.execute(
                    "INSERT INTO device(id,rack_id,name,icon,type,position_u,size_u,status,model,ip_address,health_check_url,created_at,updated_at) VALUES(?,?,?,?,?,?,?,?,?,?,?,?,?)",
                    (
                        device.id,
                        device.rack_id,
                        device.name,
                        device.icon,
                        device.type,
                        device.position_u,
                        device.size_u,
                        device.status,
                        device.model,
                        device.ip_address,
                        device.health_check_url,
                        now,
                        now,
                    ),
                )
                self._store_specs(conn, device.id, device.specs)
            for link in inventory.connections:
                conn.execute(
                    "INSERT INTO connection(id,source_device_id,target_device_id,connection_type,port_info,speed,created_at) VALUES(?,?,?,?,?,?,?)",
                    (
                        link.id,
                        link.source_device_id,
                        link.target_device_id,
                        link.connection_type,
                        link.port_info,
                        link.speed,
                        now,
                    ),
                )
        return {
            "racks": len(inventory.racks),
            "devices": len(inventory.devices),
            "connections": len(inventory.connections),
        }
