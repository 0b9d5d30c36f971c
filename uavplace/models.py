# uavplace/models.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from uavplace.geometry import Position
from uavplace.radio import lora_datarate_bps


@dataclass(frozen=True)
class Device:
    id: int
    position: Position
    slice_id: int


@dataclass(frozen=True)
class CandidatePosition:
    id: int
    position: Position


@dataclass(frozen=True)
class GatewayProfile:
    """
    Radio parameters shared by every gateway placed at a candidate site.

    Each traffic slice has its own bandwidth and aggregate datarate limit.
    """
    bandwidth_hz: dict[int, float] = field(default_factory=dict)
    max_datarate_bps: dict[int, float] = field(default_factory=dict)

    @classmethod
    def uniform(cls, slices: Iterable[int], bandwidth_hz: float, max_datarate_bps: float) -> "GatewayProfile":
        slices = sorted(set(int(s) for s in slices))
        return cls(
            bandwidth_hz={s: float(bandwidth_hz) for s in slices},
            max_datarate_bps={s: float(max_datarate_bps) for s in slices},
        )

    @property
    def slices(self) -> list[int]:
        return sorted(self.bandwidth_hz.keys())

    def datarate_bps(self, sf: int, slice_id: int) -> float:
        """Load a device configured with `sf` puts on its site for `slice_id`."""
        return float(lora_datarate_bps(sf, self.bandwidth_hz[slice_id]))
