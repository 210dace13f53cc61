"""
college_income/report.py

Presentation layer: exploratory charts, styled confusion tables and the single
HTML report written next to the other artifacts.

Charts
  - tier proportions per dominant income group (stacked bars)
  - minority-serving share per dominant income group (stacked bars)
  - cost of attendance density per dominant income group
"""

from __future__ import annotations

import base64
import html
import io
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

import matplotlib

matplotlib.use("Agg")  # headless; figures are written to disk or handed to Streamlit

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from .config import INCOME_GROUP_LEVELS, LABEL_COL, TIER_LEVELS
from .data_dictionary import DATA_DICTIONARY
from .evaluate import ConfusionSummary, CrossValidationResult, summary_frame
from .naive_bayes import MODEL_SPECS

logger = logging.getLogger(__name__)

sns.set_theme(style="whitegrid", context="notebook")

DIAGONAL_STYLE = "background-color: #fde68a; font-weight: bold"


# ---------------------------------------------------------------------
# Charts
# ---------------------------------------------------------------------

def _proportions(profiles: pd.DataFrame, column: str, levels) -> pd.DataFrame:
    table = pd.crosstab(profiles[LABEL_COL].astype(str), profiles[column].astype(str), normalize="index")
    rows = [g for g in INCOME_GROUP_LEVELS if g in table.index]
    cols = [str(v) for v in levels if str(v) in table.columns]
    return table.loc[rows, cols]


def plot_tier_proportions(profiles: pd.DataFrame) -> plt.Figure:
    table = _proportions(profiles, "tier", TIER_LEVELS)
    fig, ax = plt.subplots(figsize=(10, 5))
    table.plot(kind="bar", stacked=True, ax=ax, colormap="viridis", edgecolor="white")
    ax.set_title("Tier mix by dominant income group", fontweight="bold")
    ax.set_xlabel("Dominant parental income percentile (attendance)")
    ax.set_ylabel("Proportion of institutions")
    ax.tick_params(axis="x", rotation=0)
    ax.legend(title="Tier", bbox_to_anchor=(1.02, 1), loc="upper left", fontsize=9)
    fig.tight_layout()
    return fig


def plot_minority_serving_proportions(profiles: pd.DataFrame) -> plt.Figure:
    table = _proportions(profiles, "minority_serving", (False, True))
    table = table.rename(columns={"False": "Not minority-serving", "True": "Minority-serving"})
    fig, ax = plt.subplots(figsize=(8, 5))
    table.plot(kind="bar", stacked=True, ax=ax, color=["#8fbcd4", "#2ca02c"], edgecolor="white")
    ax.set_title("Minority-serving share by dominant income group", fontweight="bold")
    ax.set_xlabel("Dominant parental income percentile (attendance)")
    ax.set_ylabel("Proportion of institutions")
    ax.tick_params(axis="x", rotation=0)
    ax.legend(loc="upper right")
    fig.tight_layout()
    return fig


def plot_cost_density(profiles: pd.DataFrame) -> plt.Figure:
    data = profiles.assign(income_group=profiles[LABEL_COL].astype(str))
    hue_order = [g for g in INCOME_GROUP_LEVELS if g in set(data["income_group"])]
    fig, ax = plt.subplots(figsize=(9, 5))
    sns.kdeplot(
        data=data,
        x="cost",
        hue="income_group",
        hue_order=hue_order,
        common_norm=False,
        fill=True,
        alpha=0.3,
        warn_singular=False,
        ax=ax,
    )
    ax.set_title("Average cost of attendance by dominant income group", fontweight="bold")
    ax.set_xlabel("Average annual cost of attendance (USD)")
    ax.set_ylabel("Density")
    fig.tight_layout()
    return fig


EXPLORATORY_CHARTS = {
    "tier_proportions": plot_tier_proportions,
    "minority_serving_proportions": plot_minority_serving_proportions,
    "cost_density": plot_cost_density,
}


def figure_to_png(fig: plt.Figure) -> bytes:
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=120, bbox_inches="tight")
    plt.close(fig)
    return buf.getvalue()


# ---------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------

def _highlight_diagonal(df: pd.DataFrame) -> pd.DataFrame:
    styles = pd.DataFrame("", index=df.index, columns=df.columns)
    for label in df.index:
        if label in df.columns:
            styles.loc[label, label] = DIAGONAL_STYLE
    return styles


def style_confusion(summary: ConfusionSummary, percent: bool = False):
    """pandas Styler over a confusion table with the correct-prediction diagonal highlighted."""
    table = summary.row_percent if percent else summary.counts
    fmt = "{:.1f}%" if percent else "{:d}"
    caption = f"{summary.kind} confusion matrix (n={summary.n}, accuracy={summary.accuracy:.1%})"
    return table.style.apply(_highlight_diagonal, axis=None).format(fmt).set_caption(caption)


# ---------------------------------------------------------------------
# HTML report
# ---------------------------------------------------------------------

_CSS = """
body { font-family: -apple-system, Helvetica, Arial, sans-serif; margin: 2em auto; max-width: 1000px; color: #0f172a; }
h1 { border-bottom: 2px solid #0f172a; }
table { border-collapse: collapse; margin: 1em 0; }
th, td { border: 1px solid #cbd5e1; padding: 4px 8px; text-align: right; }
caption { caption-side: top; font-weight: bold; text-align: left; padding-bottom: 4px; }
.note { color: #475569; font-size: 0.9em; }
img { max-width: 100%; }
"""


def _img(png: bytes, alt: str) -> str:
    return f'<img alt="{html.escape(alt)}" src="data:image/png;base64,{base64.b64encode(png).decode("ascii")}">'


def _data_dictionary_table() -> str:
    rows = pd.DataFrame(
        {"column": list(DATA_DICTIONARY), "description": list(DATA_DICTIONARY.values())}
    )
    return rows.to_html(index=False, escape=True)


def render_report(
    profiles: pd.DataFrame,
    models: Dict,
    in_sample: Dict[str, ConfusionSummary],
    cv_results: Dict[str, CrossValidationResult],
    best_name: str,
    output_dir: Path,
    run_config: Optional[Dict] = None,
) -> Path:
    """
    Write report.html (charts embedded) and figures/*.png under output_dir.

    Returns the path of the HTML file.
    """
    output_dir = Path(output_dir)
    fig_dir = output_dir / "figures"
    fig_dir.mkdir(parents=True, exist_ok=True)

    charts = []
    for name, plot in EXPLORATORY_CHARTS.items():
        png = figure_to_png(plot(profiles))
        (fig_dir / f"{name}.png").write_bytes(png)
        charts.append(_img(png, name.replace("_", " ")))

    best = cv_results[best_name]
    summary = summary_frame(cv_results, in_sample)

    sections = [
        "<h1>Dominant parental income group of U.S. colleges</h1>",
        f'<p class="note">Generated {datetime.now():%Y-%m-%d %H:%M}. '
        f"{len(profiles)} institutions after cleaning.</p>",
        "<h2>Exploration</h2>",
        *charts,
        "<h2>Models</h2>",
        summary.to_html(float_format=lambda v: f"{v:.4f}"),
        '<p class="note">In-sample accuracy scores each model on its own training rows and '
        "measures fit only. Cross-validated accuracy pools held-out predictions.</p>",
    ]

    for name, model in models.items():
        spec = MODEL_SPECS[name]
        sections.append(f"<h3>Model {name}: {html.escape(spec.description)}</h3>")
        sections.append(model.priors().to_frame().to_html(float_format=lambda v: f"{v:.3f}"))
        for feature, table in model.conditional_tables().items():
            sections.append(f"<p><b>{html.escape(feature)}</b></p>")
            sections.append(table.to_html(float_format=lambda v: f"{v:,.3f}"))
        if name in in_sample:
            sections.append(style_confusion(in_sample[name]).to_html())
            sections.append(style_confusion(in_sample[name], percent=True).to_html())

    sections += [
        f"<h2>Cross-validation: model {best_name} (selected)</h2>",
        f'<p class="note">{best.n_splits}-fold stratified, seed {best.seed}.</p>',
        best.folds_frame().to_html(index=False, float_format=lambda v: f"{v:.4f}"),
        style_confusion(best.confusion).to_html(),
        style_confusion(best.confusion, percent=True).to_html(),
        "<h2>Columns</h2>",
        _data_dictionary_table(),
    ]
    if run_config:
        sections.append("<h2>Run settings</h2>")
        sections.append(pd.Series(run_config, name="value").astype(str).to_frame().to_html())

    doc = (
        "<!DOCTYPE html><html><head><meta charset='utf-8'>"
        "<title>College income group report</title>"
        f"<style>{_CSS}</style></head><body>\n" + "\n".join(sections) + "\n</body></html>"
    )
    out_path = output_dir / "report.html"
    out_path.write_text(doc, encoding="utf-8")
    logger.info("Report written to %s", out_path)
    return out_path
