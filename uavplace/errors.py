# uavplace/errors.py
from __future__ import annotations


class PlacementError(RuntimeError):
    """Base class for optimisation failures."""


class InfeasibilityError(PlacementError):
    """A device cannot be served by any (site, configuration) pair."""

    def __init__(self, device_id: int, message: str | None = None):
        self.device_id = int(device_id)
        super().__init__(
            message or f"Infeasible instance: no candidate position is able to reach device {self.device_id}."
        )


class CapacityRepairError(PlacementError):
    """An overloaded (site, slice) could not be relieved."""

    def __init__(self, site: int, slice_id: int, load_bps: float, max_bps: float):
        self.site = int(site)
        self.slice_id = int(slice_id)
        self.load_bps = float(load_bps)
        self.max_bps = float(max_bps)
        super().__init__(
            f"Capacity repair exhausted at site {self.site}, slice {self.slice_id}: "
            f"load={self.load_bps:.2f} bps > max={self.max_bps:.2f} bps and no device can be moved."
        )


class NoMoveError(PlacementError):
    """Neighbour generation did not find a valid move within its retry budget."""


class ConstructionError(PlacementError):
    """A greedy construction could not cover every device."""
