# SPDX-License-Identifier: Apache-2.0
# This file was created or modified with the assistance of an AI (Large Language Model).
"""Per-session store of topology node coordinates, keyed by view mode then node id."""

from __future__ import annotations

from typing import Any, Literal

ViewMode = Literal["grid", "tree"]
VIEW_MODES: tuple[ViewMode, ...] = ("grid", "tree")


class PositionStore:
    def __init__(self) -> None:
        self._positions: dict[str, dict[int, tuple[float, float]]] = {m: {} for m in VIEW_MODES}
        self._shapes: dict[str, str] = {}

    def get(self, mode: ViewMode, node_id: int) -> tuple[float, float] | None:
        return self._positions[mode].get(node_id)

    def set(self, mode: ViewMode, node_id: int, x: float, y: float) -> None:
        self._positions[mode][node_id] = (float(x), float(y))

    def positions(self, mode: ViewMode) -> dict[int, tuple[float, float]]:
        return dict(self._positions[mode])

    def has_all(self, mode: ViewMode, node_ids: list[int]) -> bool:
        cached = self._positions[mode]
        return all(node_id in cached for node_id in node_ids)

    def shape(self, mode: ViewMode) -> str | None:
        return self._shapes.get(mode)

    def set_shape(self, mode: ViewMode, shape: str) -> None:
        self._shapes[mode] = shape

    def forget(self, node_id: int) -> None:
        for cached in self._positions.values():
            cached.pop(node_id, None)

    def to_dict(self) -> dict[str, Any]:
        """Plain string-keyed mapping, suitable for a session cookie or JSON file."""
        return {
            "positions": {
                mode: {str(node_id): [x, y] for node_id, (x, y) in cached.items()}
                for mode, cached in self._positions.items()
            },
            "shapes": dict(self._shapes),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "PositionStore":
        store = cls()
        if not data:
            return store
        for mode, cached in data.get("positions", {}).items():
            if mode not in VIEW_MODES:
                continue
            for node_id, (x, y) in cached.items():
                store.set(mode, int(node_id), x, y)
        store._shapes.update(
            {mode: shape for mode, shape in data.get("shapes", {}).items() if mode in VIEW_MODES}
        )
        return store
