# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).
"""Flask app for the rack inventory: elevations, drag placement and network topology."""

from __future__ import annotations

import logging
import os
from typing import Any

import yaml
from flask import Flask, Response, jsonify, request, session
from pydantic import ValidationError
from yaml import YAMLError

from db import Database, NotFoundError
from models import (
    ConnectionCreate,
    ConnectionUpdate,
    DeviceCreate,
    DeviceMove,
    DeviceUpdate,
    InventoryInput,
    RackCreate,
    RackUpdate,
)
from services.interaction import (
    Cancel,
    ConnectionLinker,
    DragLeave,
    DragOver,
    DragStart,
    Drop,
    Event,
    PlacementController,
    RackCatalog,
)
from services.layout import apply_layout
from services.occupancy import build_occupancy
from services.placement import PlacementError
from services.positions import VIEW_MODES, PositionStore
from services.render_svg import render_rack_svg, render_topology_svg
from services.topology import TopologyGraph, build_graph

logger = logging.getLogger(__name__)


def _body() -> dict[str, Any]:
    return request.get_json(silent=True) or {}


def create_app(config: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)
    app.secret_key = os.environ.get("SECRET_KEY", "dev-secret")
    app.config["MAX_CONTENT_LENGTH"] = 1024 * 1024
    app.config["RACKVIEW_DB"] = os.environ.get("RACKVIEW_DB", "rackview.db")
    if config:
        app.config.update(config)

    db = Database(app.config["RACKVIEW_DB"])
    db.init_db()

    @app.errorhandler(ValidationError)
    def validation_error(exc: ValidationError) -> tuple[Response, int]:
        return jsonify({"error": exc.errors()[0]["msg"], "count": exc.error_count()}), 400

    @app.errorhandler(NotFoundError)
    def not_found(exc: NotFoundError) -> tuple[Response, int]:
        return jsonify({"error": str(exc)}), 404

    @app.errorhandler(PlacementError)
    def placement_error(exc: PlacementError) -> tuple[Response, int]:
        return (
            jsonify(
                {"error": str(exc), "reason": exc.reason, "conflict_device_id": exc.conflict_device_id}
            ),
            409,
        )

    def catalog() -> RackCatalog:
        return RackCatalog(db.list_racks(), db.list_devices())

    def load_controller() -> PlacementController:
        return PlacementController.from_dict(session.get("placement"))

    def load_positions() -> PositionStore:
        return PositionStore.from_dict(session.get("positions"))

    @app.get("/")
    def index() -> Response:
        return jsonify(
            {
                "racks": [r.model_dump() for r in db.list_racks()],
                "placement": load_controller().as_dict(),
            }
        )

    @app.post("/upload")
    def upload() -> Response | tuple[Response, int]:
        file = request.files.get("inventory_yaml")
        if not file or not file.filename:
            return jsonify({"error": "Please select inventory.yaml"}), 400
        raw = file.read().decode("utf-8")
        try:
            data = yaml.safe_load(raw)
        except YAMLError as exc:
            return jsonify({"error": f"YAML parse error: {exc}"}), 400
        try:
            inventory = InventoryInput.model_validate(data)
        except ValidationError as exc:
            return (
                jsonify(
                    {
                        "error": f"Validation error: {exc.error_count()} error(s): {exc.errors()[0]['msg']}"
                    }
                ),
                400,
            )
        counts = db.import_inventory(inventory)
        session.pop("positions", None)
        session.pop("placement", None)
        return jsonify({"imported": counts})

    # racks

    @app.get("/api/racks")
    def list_racks() -> Response:
        return jsonify([r.model_dump() for r in db.list_racks()])

    @app.post("/api/racks")
    def create_rack() -> tuple[Response, int]:
        rack = db.create_rack(RackCreate.model_validate(_body()))
        return jsonify(rack.model_dump()), 201

    @app.put("/api/racks/<int:rack_id>")
    def update_rack(rack_id: int) -> Response:
        return jsonify(db.update_rack(rack_id, RackUpdate.model_validate(_body())).model_dump())

    @app.delete("/api/racks/<int:rack_id>")
    def delete_rack(rack_id: int) -> tuple[str, int]:
        db.delete_rack(rack_id)
        return "", 204

    @app.get("/api/racks/<int:rack_id>/occupancy")
    def rack_occupancy(rack_id: int) -> Response:
        rack = db.get_rack(rack_id)
        hidden = load_controller().state.hidden_device_id
        occupancy = build_occupancy(rack.size_u, db.list_devices(rack_id), hidden_device_id=hidden)
        return jsonify({"rack_id": rack.id, "hidden_device_id": hidden, **occupancy.as_dict()})

    @app.post("/api/racks/<int:rack_id>/units/<int:unit>/click")
    def click_unit(rack_id: int, unit: int) -> Response | tuple[Response, int]:
        rack = db.get_rack(rack_id)
        signal = load_controller().click_unit(rack, db.list_devices(rack_id), unit)
        if signal is None:
            return jsonify({"error": f"U{unit} is not available"}), 409
        return jsonify({"action": "create_device", "rack_id": signal.rack_id, "position_u": signal.position_u})

    @app.get("/racks/<int:rack_id>/elevation.svg")
    def rack_svg(rack_id: int) -> Response:
        rack = db.get_rack(rack_id)
        svg = render_rack_svg(
            rack,
            db.list_devices(rack_id),
            selected_device_id=request.args.get("selected", type=int),
            drag=load_controller().state,
        )
        return Response(svg, mimetype="image/svg+xml")

    # devices

    @app.get("/api/devices")
    def list_devices() -> Response:
        rack_id = request.args.get("rack_id", type=int)
        return jsonify([d.model_dump() for d in db.list_devices(rack_id)])

    @app.get("/api/devices/<int:device_id>")
    def get_device(device_id: int) -> Response:
        return jsonify(db.get_device(device_id).model_dump())

    @app.post("/api/devices")
    def create_device() -> tuple[Response, int]:
        device = db.create_device(DeviceCreate.model_validate(_body()))
        return jsonify(device.model_dump()), 201

    @app.put("/api/devices/<int:device_id>")
    def update_device(device_id: int) -> Response:
        return jsonify(db.update_device(device_id, DeviceUpdate.model_validate(_body())).model_dump())

    @app.post("/api/devices/<int:device_id>/move")
    def move_device(device_id: int) -> Response:
        move = DeviceMove.model_validate(_body())
        return jsonify(db.move_device(device_id, move.position_u, move.rack_id).model_dump())

    @app.delete("/api/devices/<int:device_id>")
    def delete_device(device_id: int) -> tuple[str, int]:
        db.delete_device(device_id)
        store = load_positions()
        store.forget(device_id)
        session["positions"] = store.to_dict()
        return "", 204

    # drag and drop placement

    def dispatch(event: Event) -> Response:
        controller = load_controller()
        command = controller.dispatch(event, catalog())
        moved = None
        if command is not None:
            try:
                moved = db.move_device(command.device_id, **command.payload())
            except (PlacementError, NotFoundError) as exc:
                controller.commit_finished(command.gesture_id, error=str(exc))
            else:
                controller.commit_finished(command.gesture_id)
        session["placement"] = controller.as_dict()
        return jsonify(
            {
                **controller.as_dict(),
                "command": None
                if command is None
                else {
                    "device_id": command.device_id,
                    "target_rack_id": command.target_rack_id,
                    "target_top_u": command.target_top_u,
                    "rack_changed": command.rack_changed,
                },
                "device": moved.model_dump() if moved else None,
            }
        )

    @app.get("/api/placement")
    def placement_state() -> Response:
        return jsonify(load_controller().as_dict())

    @app.post("/api/placement/drag-start")
    def drag_start() -> Response:
        return dispatch(DragStart(int(_body()["device_id"])))

    @app.post("/api/placement/drag-over")
    def drag_over() -> Response:
        body = _body()
        return dispatch(DragOver(int(body["rack_id"]), float(body["offset_y"])))

    @app.post("/api/placement/drag-leave")
    def drag_leave() -> Response:
        return dispatch(DragLeave(int(_body()["rack_id"])))

    @app.post("/api/placement/drop")
    def drop() -> Response:
        rack_id = _body().get("rack_id")
        return dispatch(Drop(int(rack_id) if rack_id is not None else None))

    @app.post("/api/placement/cancel")
    def cancel() -> Response:
        return dispatch(Cancel())

    @app.post("/api/placement/error/dismiss")
    def dismiss_error() -> Response:
        controller = load_controller()
        controller.dismiss_error()
        session["placement"] = controller.as_dict()
        return jsonify(controller.as_dict())

    # connections

    @app.get("/api/connections")
    def list_connections() -> Response:
        return jsonify([c.model_dump() for c in db.list_connections()])

    @app.post("/api/connections")
    def create_connection() -> tuple[Response, int]:
        link = db.create_connection(ConnectionCreate.model_validate(_body()))
        return jsonify(link.model_dump()), 201

    @app.put("/api/connections/<int:connection_id>")
    def update_connection(connection_id: int) -> Response:
        link = db.update_connection(connection_id, ConnectionUpdate.model_validate(_body()))
        return jsonify(link.model_dump())

    @app.delete("/api/connections/<int:connection_id>")
    def delete_connection(connection_id: int) -> tuple[str, int]:
        db.delete_connection(connection_id)
        return "", 204

    # topology

    def laid_out_graph() -> TopologyGraph:
        mode = request.args.get("mode", "grid")
        if mode not in VIEW_MODES:
            raise ValueError(f"unknown view mode: {mode!r}")
        graph = build_graph(
            db.list_devices(),
            db.list_racks(),
            db.list_connections(),
            selected_id=request.args.get("selected", type=int),
            pending_id=session.get("link_source"),
        )
        store = load_positions()
        apply_layout(graph, mode, store)
        session["positions"] = store.to_dict()
        return graph

    @app.errorhandler(ValueError)
    def bad_request(exc: ValueError) -> tuple[Response, int]:
        return jsonify({"error": str(exc)}), 400

    @app.errorhandler(KeyError)
    def missing_field(exc: KeyError) -> tuple[Response, int]:
        return jsonify({"error": f"missing field: {exc.args[0] if exc.args else ''}"}), 400

    @app.get("/api/topology")
    def topology() -> Response:
        graph = laid_out_graph()
        return jsonify({"mode": request.args.get("mode", "grid"), **graph.as_dict()})

    @app.get("/topology.svg")
    def topology_svg() -> Response:
        return Response(render_topology_svg(laid_out_graph()), mimetype="image/svg+xml")

    @app.post("/api/topology/positions")
    def save_position() -> Response | tuple[Response, int]:
        body = _body()
        mode = body.get("mode")
        if mode not in VIEW_MODES:
            return jsonify({"error": f"unknown view mode: {mode!r}"}), 400
        store = load_positions()
        store.set(mode, int(body["node_id"]), float(body["x"]), float(body["y"]))
        session["positions"] = store.to_dict()
        return jsonify({"node_id": int(body["node_id"]), "mode": mode, "x": body["x"], "y": body["y"]})

    @app.post("/api/topology/link")
    def link_select() -> Response | tuple[Response, int]:
        body = _body()
        linker = ConnectionLinker(session.get("link_source"))
        command = linker.select(int(body["device_id"]))
        session["link_source"] = linker.source_device_id
        if command is None:
            return jsonify({"pending_source": linker.source_device_id})
        link = db.create_connection(
            ConnectionCreate(
                source_device_id=command.source_device_id,
                target_device_id=command.target_device_id,
                speed=body.get("speed"),
                connection_type=body.get("connection_type"),
                port_info=body.get("port_info"),
            )
        )
        return jsonify({"pending_source": None, "connection": link.model_dump()}), 201

    @app.post("/api/topology/link/cancel")
    def link_cancel() -> Response:
        session.pop("link_source", None)
        return jsonify({"pending_source": None})

    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    create_app().run(host="0.0.0.0", port=5000, debug=True)
