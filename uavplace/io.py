# uavplace/io.py
from __future__ import annotations

import os
from typing import Sequence

import numpy as np

from uavplace.geometry import Position
from uavplace.models import CandidatePosition, Device
from uavplace.solution import Solution


# -----------------------------
# Loaders
# -----------------------------
def _read_xyz(path: str) -> np.ndarray:
    xyz = np.loadtxt(path, dtype=float, ndmin=2)
    if xyz.size == 0:
        return np.zeros((0, 3), dtype=float)
    if xyz.shape[1] != 3:
        raise ValueError(f"{path}: expected 'x y z' per line, got {xyz.shape[1]} column(s).")
    return xyz


def read_devices(device_path: str, slice_path: str) -> list[Device]:
    """
    Devices from a position file ('x y z' per line, ids in line order) and a slice
    association file ('device_id slice_id' per line).
    """
    xyz = _read_xyz(device_path)
    n = xyz.shape[0]

    assoc = np.loadtxt(slice_path, dtype=int, ndmin=2)
    if assoc.size and assoc.shape[1] != 2:
        raise ValueError(f"{slice_path}: expected 'device_id slice_id' per line, got {assoc.shape[1]} column(s).")

    slice_of = np.full(n, -1, dtype=int)
    for dev_id, slice_id in assoc.reshape(-1, 2):
        if not 0 <= dev_id < n:
            raise ValueError(f"{slice_path}: device id {dev_id} out of range (0..{n - 1}).")
        slice_of[dev_id] = slice_id

    missing = np.flatnonzero(slice_of < 0)
    if missing.size:
        raise ValueError(f"{slice_path}: no slice association for {missing.size} device(s), first id {int(missing[0])}.")

    return [
        Device(id=i, position=Position(*(float(v) for v in xyz[i])), slice_id=int(slice_of[i]))
        for i in range(n)
    ]


def read_candidate_positions(path: str) -> list[CandidatePosition]:
    xyz = _read_xyz(path)
    return [CandidatePosition(id=i, position=Position(*(float(v) for v in p))) for i, p in enumerate(xyz)]


# -----------------------------
# Writers
# -----------------------------
def write_devices(devices: Sequence[Device], device_path: str, slice_path: str) -> None:
    xyz = np.array([[d.position.x, d.position.y, d.position.z] for d in devices], dtype=float).reshape(-1, 3)
    np.savetxt(device_path, xyz, fmt="%.6f", delimiter=" ")
    assoc = np.array([[d.id, d.slice_id] for d in devices], dtype=int).reshape(-1, 2)
    np.savetxt(slice_path, assoc, fmt="%d", delimiter=" ")


def write_candidate_positions(sites: Sequence[CandidatePosition], path: str) -> None:
    xyz = np.array([[s.position.x, s.position.y, s.position.z] for s in sites], dtype=float).reshape(-1, 3)
    np.savetxt(path, xyz, fmt="%.6f", delimiter=" ")


def write_text(path: str, text: str) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)


def export_results(
    solution: Solution,
    log_text: str,
    out_dir: str,
    prefix: str,
    seed: int,
    n_sites: int,
    n_devices: int,
) -> dict[str, str]:
    """Write solver log, placement and device configuration reports; returns the paths."""
    paths = {
        "log": os.path.join(out_dir, f"{prefix}_log_{seed}s_{n_sites}g_{n_devices}d.dat"),
        "placement": os.path.join(out_dir, f"{prefix}_Placement_{seed}s_{n_sites}x1Gv_{n_devices}D.dat"),
        "configurations": os.path.join(out_dir, f"{prefix}_DevicesConfigurations_{seed}s_{n_sites}x1Gv_{n_devices}D.dat"),
    }
    write_text(paths["log"], log_text)
    write_text(paths["placement"], solution.deployed_sites_report())
    write_text(paths["configurations"], solution.configurations_report())
    return paths
