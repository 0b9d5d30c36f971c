# uavplace/plot.py
from __future__ import annotations

import numpy as np
import matplotlib.pyplot as plt

from uavplace.geometry import positions_to_array
from uavplace.solution import Solution


def plot_deployment(
    solution: Solution,
    title: str = "",
    draw_links: bool = True,
    max_links: int = 2000,
):
    """
    Devices colored by slice, candidate sites (unused: grey, deployed: black triangles),
    and optionally a line from each device to its site.

    - max_links: if there are more devices than this, links are skipped automatically
    """
    p = solution.problem
    dev_xy = positions_to_array(d.position for d in p.devices)[:, :2]
    site_xy = positions_to_array(s.position for s in p.sites)[:, :2]
    deployed = np.array(sorted(solution.deployed), dtype=int)

    plt.figure()
    ax = plt.gca()

    links_ok = draw_links and p.n_devices <= max_links and solution.is_complete
    if links_ok:
        for d in range(p.n_devices):
            s = solution.site[d]
            ax.plot(
                [dev_xy[d, 0], site_xy[s, 0]], [dev_xy[d, 1], site_xy[s, 1]],
                c="tab:gray", linewidth=0.5, alpha=0.4,
            )

    for k, sid in enumerate(p.slice_ids):
        m = p.device_slice == k
        plt.scatter(dev_xy[m, 0], dev_xy[m, 1], s=8, label=f"Slice {sid}", alpha=0.7)

    unused = np.setdiff1d(np.arange(p.n_sites), deployed)
    plt.scatter(site_xy[unused, 0], site_xy[unused, 1], s=12, c="lightgray", marker="s", label="Candidate")
    if deployed.size:
        plt.scatter(site_xy[deployed, 0], site_xy[deployed, 1], s=40, c="black", marker="^", label="Deployed")

    if draw_links and not links_ok:
        plt.text(
            0.01, 0.01,
            f"Links skipped (N={p.n_devices} > max_links={max_links})",
            transform=ax.transAxes,
            fontsize=9,
            alpha=0.8
        )

    ax.set_aspect("equal", adjustable="box")
    plt.title(title or f"Deployment (sites={len(solution.deployed)}, cost={solution.cost:.1f})")
    plt.xlabel("x (m)")
    plt.ylabel("y (m)")
    plt.legend(loc="best")
    plt.grid(True, alpha=0.2)
    plt.show()


def parse_log(log_text: str) -> dict[str, np.ndarray]:
    """CSV solver log -> {column: values}."""
    lines = [ln for ln in log_text.strip().splitlines() if ln]
    if not lines:
        return {}
    header = lines[0].split(",")
    rows = [ln.split(",") for ln in lines[1:]]
    cols: dict[str, np.ndarray] = {}
    for j, name in enumerate(header):
        vals = [r[j] for r in rows]
        try:
            cols[name] = np.array([float(v) for v in vals], dtype=float)
        except ValueError:
            cols[name] = np.array(vals, dtype=object)
    return cols


def plot_convergence(log_text: str, title: str = ""):
    """Current and best cost per iteration (or generation) from a solver log."""
    cols = parse_log(log_text)
    if not cols:
        return

    x_key = "it" if "it" in cols else "gen"
    x = cols[x_key]

    plt.figure()
    if "currCost" in cols:
        plt.plot(x, cols["currCost"], linewidth=0.8, alpha=0.7, label="Current")
    if "avgCost" in cols:
        plt.plot(x, cols["avgCost"], linewidth=0.8, alpha=0.7, label="Population mean")
    plt.plot(x, cols["bestCost"], linewidth=1.5, c="black", label="Best")

    plt.title(title or "Convergence")
    plt.xlabel("Generation" if x_key == "gen" else "Iteration")
    plt.ylabel("Cost")
    plt.legend(loc="best")
    plt.grid(True, alpha=0.2)
    plt.show()
