# uavplace/helper.py
from __future__ import annotations

import csv
from dataclasses import asdict, is_dataclass
from typing import Any, Mapping, Sequence

import numpy as np

from uavplace.radio import MIN_SF, NUM_CONFIGS
from uavplace.solution import Solution


def _fmt_value(v: Any, key: str | None = None) -> str:
    """Pretty formatting + some unit-aware helpers based on key names."""
    if isinstance(v, bool):
        return str(v)
    if isinstance(v, float):
        if key:
            k = key.lower()
            if k.endswith("_hz"):
                if v >= 1e6:
                    return f"{v/1e6:.3f} MHz"
                if v >= 1e3:
                    return f"{v/1e3:.3f} kHz"
                return f"{v:.3f} Hz"
            if k.endswith("_m"):
                if abs(v) >= 1000.0:
                    return f"{v/1000.0:.3f} km"
                return f"{v:.3f} m"
            if k.endswith("_bps"):
                return f"{v:.2f} bps"
            if k.endswith("_dbm"):
                return f"{v:.2f} dBm"
            if k.endswith("_db"):
                return f"{v:.3f} dB"
            if k.endswith("_s"):
                return f"{v:.3f} s"
        return f"{v:.6g}"
    if isinstance(v, int):
        return str(v)
    if isinstance(v, str):
        return f'"{v}"'
    if isinstance(v, tuple):
        return "(" + ", ".join(_fmt_value(x) for x in v) + ")"
    if isinstance(v, list):
        return "[" + ", ".join(_fmt_value(x) for x in v) + "]"
    return str(v)


def _flatten_dict(d: Mapping[str, Any], prefix: str = "") -> list[tuple[str, Any]]:
    """Flatten nested dicts into [('a.b.c', value), ...]."""
    items: list[tuple[str, Any]] = []
    for k in sorted(d.keys()):
        v = d[k]
        full = f"{prefix}.{k}" if prefix else k
        if isinstance(v, Mapping):
            items.extend(_flatten_dict(v, full))
        else:
            items.append((full, v))
    return items


def _group_by_topkey(flat: Sequence[tuple[str, Any]]) -> dict[str, list[tuple[str, Any]]]:
    groups: dict[str, list[tuple[str, Any]]] = {}
    for path, v in flat:
        top = path.split(".", 1)[0]
        rest = path.split(".", 1)[1] if "." in path else ""
        groups.setdefault(top, []).append((rest, v))
    return groups


def print_config(cfg: Any) -> None:
    """Pretty-print ScenarioConfig (or any nested dataclass) with sections."""
    if not is_dataclass(cfg):
        raise TypeError("print_config expects a dataclass instance (e.g., ScenarioConfig).")

    d = asdict(cfg)

    # computed values, not part of asdict()
    qos = getattr(cfg, "qos", None)
    if qos is not None:
        d["_derived"] = {
            "n_configurations": NUM_CONFIGS,
            "max_delay_s": float(qos.max_delay_s),
        }

    flat = _flatten_dict(d)
    groups = _group_by_topkey(flat)

    preferred_order = [
        "run",
        "data",
        "scenario",
        "phy",
        "qos",
        "gateway",
        "cost",
        "tabu",
        "annealing",
        "genetic",
        "grasp",
        "_derived",
    ]
    section_names = [s for s in preferred_order if s in groups]
    section_names += [s for s in sorted(groups.keys()) if s not in section_names]

    print("\n" + "=" * 72)
    print("SCENARIO CONFIG")
    print("=" * 72)

    for sec in section_names:
        entries = groups[sec]
        print(f"\n[{sec}]")
        pad = max([len(k) for (k, _v) in entries] + [1])
        for k, v in sorted(entries, key=lambda x: x[0]):
            shown_key = k if k else sec
            leaf_name = shown_key.split(".")[-1]
            print(f"  {shown_key:<{pad}} : {_fmt_value(v, leaf_name)}")

    print("\n" + "=" * 72 + "\n")


def summarize(solution: Solution) -> dict[str, Any]:
    """KPIs of a solution: cost split, SF usage and slice utilisation of deployed sites."""
    p = solution.problem
    sf_counts = solution.sf_counts()
    deployed = sorted(solution.deployed)

    if deployed:
        util = solution.load[deployed, :] / p.max_datarate[None, :]
        util_max = float(util.max())
        util_mean = float(util[solution.load[deployed, :] > 0].mean()) if np.any(util > 0) else 0.0
    else:
        util_max = util_mean = 0.0

    devices_per_site = [len(solution.devices_at[s]) for s in deployed]

    return {
        "n_devices": p.n_devices,
        "n_sites": p.n_sites,
        "n_deployed": len(deployed),
        "cost": float(solution.cost),
        "cost_sites": float(p.alpha * len(deployed)),
        "cost_sf": float(p.beta * sf_counts.max()),
        "max_sf_count": int(sf_counts.max()),
        **{f"sf{MIN_SF + i}": int(c) for i, c in enumerate(sf_counts)},
        "devices_per_site_mean": float(np.mean(devices_per_site)) if devices_per_site else 0.0,
        "devices_per_site_max": int(max(devices_per_site)) if devices_per_site else 0,
        "util_max": util_max,
        "util_mean": util_mean,
        "feasible": bool(solution.is_feasible()),
    }


def print_summary(title: str, s: dict) -> None:
    print(f"\n=== {title} ===")
    print(f"Deployed sites: {s['n_deployed']}/{s['n_sites']} for {s['n_devices']} devices")
    print(f"Cost: {s['cost']:.1f} (sites={s['cost_sites']:.1f}, sf={s['cost_sf']:.1f})")
    sf_keys = sorted(k for k in s if k.startswith("sf") and k[2:].isdigit())
    print("SF usage: " + ", ".join(f"{k.upper()}={s[k]}" for k in sf_keys))
    print(f"Devices per site: mean={s['devices_per_site_mean']:.2f}, max={s['devices_per_site_max']}")
    print(f"Slice utilisation: mean={s['util_mean']:.3f}, max={s['util_max']:.3f}")
    print(f"Feasible: {s['feasible']}")


# ----------------------------
# Helpers for run output
# ----------------------------
def flatten_summary(prefix: str, s: dict[str, Any]) -> dict[str, Any]:
    return {f"{prefix}_{k}": v for k, v in s.items()}


def flatten_run_record(rec: dict[str, Any]) -> dict[str, Any]:
    row: dict[str, Any] = {
        "seed": rec["seed"],
        "algorithm": rec["algorithm"],
        "n_devices": rec["n_devices"],
        "n_sites": rec["n_sites"],
        "time_limit_s": rec["time_limit_s"],
        "best_time_s": rec["best_time_s"],
    }
    row |= rec.get("profile", {})
    row |= flatten_summary("initial", rec["initial"])
    row |= flatten_summary("best", rec["best"])
    return row


def write_csv(path: str, rows: list[dict[str, Any]]):
    if not rows:
        return
    fieldnames = sorted({k for r in rows for k in r.keys()})
    with open(path, "w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=fieldnames)
        w.writeheader()
        w.writerows(rows)
