# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).
"""Inventory models and validation for racks, devices and connections."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

SUPPORTED_DEVICE_TYPES = {"server", "network", "storage"}
SUPPORTED_DEVICE_STATUSES = {"online", "warning", "offline", "unknown"}

DeviceType = Literal["server", "network", "storage"]
DeviceStatus = Literal["online", "warning", "offline", "unknown"]


def occupied_range(top_u: int, size_u: int) -> tuple[int, int]:
    """Return ``(bottom, top)`` for a device whose top unit is ``top_u``."""
    return top_u - size_u + 1, top_u


def ranges_intersect(a: tuple[int, int], b: tuple[int, int]) -> bool:
    # neither entirely above nor entirely below the other
    return not (a[0] > b[1] or a[1] < b[0])


class Rack(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    description: str = ""
    size_u: int = Field(default=42, gt=0)


class Device(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    rack_id: int
    name: str
    type: DeviceType = "server"
    position_u: int = Field(ge=1)
    size_u: int = Field(default=1, ge=1)
    status: DeviceStatus = "unknown"
    icon: str = ""
    model: str = ""
    ip_address: str | None = None
    health_check_url: str | None = None
    specs: dict[str, str] = Field(default_factory=dict)

    @property
    def bottom_u(self) -> int:
        return self.position_u - self.size_u + 1


class Connection(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    source_device_id: int
    target_device_id: int
    speed: str | None = None
    connection_type: str | None = None
    port_info: str | None = None


class RackCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    description: str = ""
    size_u: int = Field(default=42, gt=0)


class RackUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    description: str | None = None
    size_u: int | None = Field(default=None, gt=0)


class DeviceCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    rack_id: int
    name: str
    type: DeviceType
    position_u: int = Field(ge=1)
    size_u: int = Field(default=1, ge=1)
    status: DeviceStatus = "online"
    icon: str = ""
    model: str = ""
    ip_address: str | None = None
    health_check_url: str | None = None
    specs: dict[str, str] = Field(default_factory=dict)


class DeviceUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    type: DeviceType | None = None
    position_u: int | None = Field(default=None, ge=1)
    size_u: int | None = Field(default=None, ge=1)
    status: DeviceStatus | None = None
    icon: str | None = None
    model: str | None = None
    ip_address: str | None = None
    health_check_url: str | None = None
    # replaces every spec of the device when given
    specs: dict[str, str] | None = None


class DeviceMove(BaseModel):
    model_config = ConfigDict(extra="forbid")

    position_u: int = Field(ge=1)
    rack_id: int | None = None


class ConnectionCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    source_device_id: int
    target_device_id: int
    speed: str | None = None
    connection_type: str | None = None
    port_info: str | None = None

    @model_validator(mode="after")
    def validate_endpoints(self) -> "ConnectionCreate":
        if self.source_device_id == self.target_device_id:
            raise ValueError("source and target must be different devices")
        return self


class ConnectionUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    speed: str | None = None
    connection_type: str | None = None
    port_info: str | None = None


class InventoryInput(BaseModel):
    """A whole inventory document as uploaded in ``inventory.yaml``."""

    model_config = ConfigDict(extra="forbid")

    version: int = 1
    racks: list[Rack]
    devices: list[Device] = Field(default_factory=list)
    connections: list[Connection] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_references(self) -> "InventoryInput":
        rack_ids = [rack.id for rack in self.racks]
        if len(set(rack_ids)) != len(rack_ids):
            raise ValueError("rack ids must be unique")
        device_ids = [device.id for device in self.devices]
        if len(set(device_ids)) != len(device_ids):
            raise ValueError("device ids must be unique")
        connection_ids = [conn.id for conn in self.connections]
        if len(set(connection_ids)) != len(connection_ids):
            raise ValueError("connection ids must be unique")

        racks = {rack.id: rack for rack in self.racks}
        placed: dict[int, list[Device]] = {rack_id: [] for rack_id in racks}
        for device in self.devices:
            rack = racks.get(device.rack_id)
            if rack is None:
                raise ValueError(f"device {device.id} references unknown rack {device.rack_id}")
            bottom, top = occupied_range(device.position_u, device.size_u)
            if top > rack.size_u or bottom < 1:
                raise ValueError(
                    f"device {device.id} cannot be placed: U{top}-U{bottom} does not fit in rack {rack.id}"
                )
            for other in placed[rack.id]:
                if ranges_intersect((bottom, top), occupied_range(other.position_u, other.size_u)):
                    raise ValueError(
                        f"device {device.id} cannot be placed: U{top}-U{bottom} overlaps device {other.id}"
                    )
            placed[rack.id].append(device)

        device_set = set(device_ids)
        for conn in self.connections:
            if conn.source_device_id not in device_set or conn.target_device_id not in device_set:
                raise ValueError(f"connection {conn.id} references unknown device")
        return self
