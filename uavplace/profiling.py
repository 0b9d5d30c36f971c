# uavplace/profiling.py
from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator


@dataclass
class Profiler:
    """Accumulating wall-clock timers (seconds) and event counters."""
    t: Dict[str, float] = field(default_factory=dict)
    c: Dict[str, int] = field(default_factory=dict)
    _start: Dict[str, float] = field(default_factory=dict)

    def tic(self, name: str) -> None:
        self._start[name] = time.perf_counter()

    def toc(self, name: str) -> float:
        dt = time.perf_counter() - self._start.pop(name, time.perf_counter())
        self.t[name] = self.t.get(name, 0.0) + dt
        return dt

    @contextmanager
    def timed(self, name: str) -> Iterator[None]:
        self.tic(name)
        try:
            yield
        finally:
            self.toc(name)

    def inc(self, name: str, k: int = 1) -> None:
        self.c[name] = self.c.get(name, 0) + k

    def merge(self, other: "Profiler") -> None:
        for k, v in other.t.items():
            self.t[k] = self.t.get(k, 0.0) + v
        for k, v in other.c.items():
            self.c[k] = self.c.get(k, 0) + v

    def as_record(self) -> dict[str, float | int]:
        """Flat dict: time_<name>_s for timers, <name> for counters."""
        rec: dict[str, float | int] = {f"time_{k}_s": v for k, v in sorted(self.t.items())}
        rec.update(sorted(self.c.items()))
        return rec
