from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

import matplotlib.pyplot as plt
import pandas as pd

FIG_SIZE = (8, 6)
DPI = 300


def _ensure_dir(save_dir: Optional[str | Path]) -> Optional[Path]:
    if save_dir is None:
        return None
    p = Path(save_dir)
    p.mkdir(parents=True, exist_ok=True)
    return p


def _savefig(save_dir: Optional[str | Path], filename: str) -> Optional[Path]:
    p = _ensure_dir(save_dir)
    if p is None:
        return None
    out = p / filename
    plt.savefig(out, bbox_inches="tight", dpi=DPI)
    return out


def plot_trajectories_by_class(
    summary: pd.DataFrame,
    ages: Sequence[int],
    title: str = "Self-Control Trajectory Classes (Ages 3-17)",
    save_dir: Optional[str | Path] = None,
    filename: str = "trajectory_plot_by_class.png",
) -> Optional[Path]:
    """
    Line plot of class mean scores by age with +/- 1 SE error bars.
    `summary` is the long table from `validation.trajectory_summary`.
    """
    print("\nGenerating trajectory plots...")

    fig, ax = plt.subplots(figsize=FIG_SIZE)
    for i, (label, group) in enumerate(summary.groupby("Class", sort=True)):
        group = group.sort_values("Age")
        ax.errorbar(
            group["Age"],
            group["Mean"],
            yerr=group["SE"],
            color=f"C{i}",
            linewidth=2,
            marker="o",
            markersize=6,
            capsize=4,
            label=label,
        )

    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.set_xlabel("Age (Years)", fontsize=12)
    ax.set_ylabel("Self-Control Factor Score", fontsize=12)
    ax.set_xticks(list(ages))
    ax.grid(True, alpha=0.3)
    ax.legend(title="Trajectory Class", loc="upper center", bbox_to_anchor=(0.5, -0.12), ncol=max(1, summary["Class"].nunique()))
    fig.tight_layout()

    out = _savefig(save_dir, filename)
    plt.close(fig)
    if out is not None:
        print(f"Saved: {out}")
    return out
