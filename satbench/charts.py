from __future__ import annotations

import logging
from pathlib import Path

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

LOGGER = logging.getLogger("satbench.charts")

sns.set_style("whitegrid")
plt.rcParams["figure.dpi"] = 100
plt.rcParams["savefig.dpi"] = 300
plt.rcParams["font.size"] = 10
plt.rcParams["axes.labelsize"] = 11
plt.rcParams["axes.titlesize"] = 13
plt.rcParams["legend.fontsize"] = 9

TARGET_COLOR = "#A23B72"
ACHIEVED_COLOR = "#2E86AB"
THRESHOLD_COLOR = "#F18F01"
SATURATED_COLOR = "#C73E1D"


def render_ramp_chart(
    stages: pd.DataFrame,
    chart_path: Path,
    title: str = "Saturation Search: Target vs Achieved Throughput",
) -> Path | None:
    """Plot target and achieved rate per stage, shading the tolerance band."""
    if stages.empty:
        LOGGER.warning("No stage data available for ramp chart")
        return None

    df = stages.sort_values("stage")
    fig, ax = plt.subplots(figsize=(10, 6))

    ax.fill_between(
        df["stage"],
        df["threshold"],
        df["target_rate"],
        color=THRESHOLD_COLOR,
        alpha=0.15,
        label="Tolerance band",
    )
    ax.plot(
        df["stage"],
        df["target_rate"],
        marker="s",
        linewidth=2,
        markersize=6,
        linestyle="--",
        color=TARGET_COLOR,
        label="Target rate",
    )
    ax.plot(
        df["stage"],
        df["achieved_rate"],
        marker="o",
        linewidth=2.5,
        markersize=8,
        color=ACHIEVED_COLOR,
        label="Achieved rate",
    )

    saturated = df[df["saturated"].astype(bool)]
    if not saturated.empty:
        ax.scatter(
            saturated["stage"],
            saturated["achieved_rate"],
            s=160,
            marker="X",
            color=SATURATED_COLOR,
            zorder=5,
            label="Saturated",
        )

    sustained = df[~df["saturated"].astype(bool)]
    if not sustained.empty:
        last = sustained.iloc[-1]
        ax.annotate(
            f"{int(last['achieved_rate']):,} ops/sec",
            xy=(last["stage"], last["achieved_rate"]),
            xytext=(0, 12),
            textcoords="offset points",
            ha="center",
            fontweight="semibold",
        )

    ax.set_xlabel("Stage", fontweight="semibold")
    ax.set_ylabel("Throughput (ops/sec)", fontweight="semibold")
    ax.set_title(title, fontweight="bold", pad=15)
    ax.set_xticks(list(df["stage"]))
    ax.grid(True, alpha=0.3, linestyle="--")
    ax.legend(loc="upper left", frameon=True)

    plt.tight_layout()
    fig.savefig(chart_path, bbox_inches="tight", facecolor="white")
    plt.close(fig)
    LOGGER.info("Rendering chart %s", chart_path)
    return chart_path


__all__ = ["render_ramp_chart"]
