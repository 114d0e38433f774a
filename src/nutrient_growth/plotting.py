"""
Plotly charts of expression against growth rate.

One panel per gene, points colored by limiting nutrient, with the least
squares line of each nutrient drawn over its points. Figures can be
shown in a notebook or saved as standalone HTML.

Usage:
    from nutrient_growth.plotting import ExpressionPlotter, select_genes

    genes = select_genes(tidy, biological_process="leucine biosynthesis")
    plotter = ExpressionPlotter()
    fig = plotter.plot_expression(genes, free_y=True)
    plotter.save_html(fig, "leucine.html")
"""

import logging
import math
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

import pandas as pd
import plotly.graph_objects as go
from plotly.colors import qualitative
from plotly.subplots import make_subplots

from .config import NUTRIENT_LABELS
from .regression import fit_ols

logger = logging.getLogger(__name__)

# One color per nutrient, stable across figures
NUTRIENT_COLORS: Dict[str, str] = dict(zip(NUTRIENT_LABELS.values(), qualitative.Plotly))


def select_genes(
    tidy: pd.DataFrame,
    names: Optional[Iterable[str]] = None,
    systematic_names: Optional[Iterable[str]] = None,
    biological_process: Optional[str] = None,
) -> pd.DataFrame:
    """
    Subset the tidy table to the genes to plot.

    Criteria that are given are combined with AND; within a list any
    entry matches.

    Args:
        tidy: Tidy expression table
        names: Display names to keep (e.g. ["LEU1", "LEU2"])
        systematic_names: Systematic names to keep (e.g. ["YGL009C"])
        biological_process: Exact biological process annotation

    Raises:
        ValueError: if nothing matches
    """
    mask = pd.Series(True, index=tidy.index)
    if names is not None:
        mask &= tidy["name"].isin(list(names))
    if systematic_names is not None:
        mask &= tidy["systematic_name"].isin(list(systematic_names))
    if biological_process is not None:
        mask &= tidy["biological_process"] == biological_process

    selected = tidy.loc[mask]
    if selected.empty:
        raise ValueError("No genes match the selection")
    return selected


def _facet_label(name: str, systematic_name: str) -> str:
    if not name:
        return systematic_name
    return f"{name} ({systematic_name})"


class ExpressionPlotter:
    """Faceted expression-vs-rate scatter plots."""

    def __init__(self, template: str = "plotly_white"):
        """
        Initialize plotter.

        Args:
            template: Plotly template (plotly_white, plotly_dark, ggplot2, etc.)
        """
        self.template = template

    def plot_expression(
        self,
        tidy: pd.DataFrame,
        free_y: bool = False,
        facet_col_wrap: int = 4,
        title: str = "Expression vs growth rate",
        show_fit: bool = True,
        panel_height: int = 250,
        width: int = 1100,
    ) -> go.Figure:
        """
        Create one scatter panel per (name, systematic_name).

        Args:
            tidy: Tidy expression table (usually a select_genes subset)
            free_y: Give every panel its own y range
            facet_col_wrap: Maximum panels per row
            title: Chart title
            show_fit: Draw the per-nutrient least squares line
            panel_height: Height of one row of panels in pixels
            width: Figure width in pixels

        Returns:
            Plotly Figure object
        """
        if tidy.empty:
            return self._empty_figure("No expression data to display")

        facets: List[Tuple[str, str]] = list(
            tidy[["name", "systematic_name"]]
            .drop_duplicates()
            .itertuples(index=False, name=None)
        )
        n_cols = max(1, min(facet_col_wrap, len(facets)))
        n_rows = math.ceil(len(facets) / n_cols)
        if len(facets) > 40:
            logger.warning(f"Plotting {len(facets)} panels; consider select_genes first")

        fig = make_subplots(
            rows=n_rows,
            cols=n_cols,
            subplot_titles=[_facet_label(n, s) for n, s in facets],
            shared_xaxes="all",
            shared_yaxes=False if free_y else "all",
            vertical_spacing=min(0.08, 0.3 / n_rows),
            horizontal_spacing=0.04 if not free_y else 0.06,
        )

        legend_shown = set()
        for i, (name, systematic_name) in enumerate(facets):
            row, col = i // n_cols + 1, i % n_cols + 1
            gene = tidy[(tidy["name"] == name) & (tidy["systematic_name"] == systematic_name)]

            for nutrient, points in gene.groupby("nutrient", observed=True, sort=True):
                color = NUTRIENT_COLORS.get(str(nutrient), "#95a5a6")
                show_legend = nutrient not in legend_shown
                legend_shown.add(nutrient)

                fig.add_trace(
                    go.Scatter(
                        x=points["rate"],
                        y=points["expression"],
                        mode="markers",
                        name=str(nutrient),
                        legendgroup=str(nutrient),
                        showlegend=show_legend,
                        marker=dict(color=color, size=7),
                        hovertemplate=(
                            f"{_facet_label(name, systematic_name)}<br>{nutrient}"
                            "<br>rate=%{x}<br>expression=%{y:.2f}<extra></extra>"
                        ),
                    ),
                    row=row,
                    col=col,
                )

                if show_fit:
                    line = self._fit_line(points["rate"], points["expression"])
                    if line is not None:
                        fig.add_trace(
                            go.Scatter(
                                x=line[0],
                                y=line[1],
                                mode="lines",
                                legendgroup=str(nutrient),
                                showlegend=False,
                                line=dict(color=color, width=1.5),
                                hoverinfo="skip",
                            ),
                            row=row,
                            col=col,
                        )

        fig.update_layout(
            title=dict(text=title, x=0.5, font=dict(size=18)),
            template=self.template,
            height=max(400, panel_height * n_rows),
            width=width,
            legend=dict(title="Nutrient"),
        )
        fig.update_xaxes(title_text="Growth rate", row=n_rows)
        if free_y:
            fig.update_yaxes(matches=None, showticklabels=True)
        fig.update_yaxes(title_text="Expression", col=1)
        return fig

    @staticmethod
    def _fit_line(rate: pd.Series, expression: pd.Series) -> Optional[Tuple[List[float], List[float]]]:
        """Endpoints of the least squares line, or None when undefined."""
        intercept, slope = fit_ols(rate.to_numpy(), expression.to_numpy())
        if math.isnan(slope.estimate):
            return None
        x = [float(rate.min()), float(rate.max())]
        return x, [intercept.estimate + slope.estimate * v for v in x]

    def _empty_figure(self, message: str) -> go.Figure:
        """Create an empty figure with a message."""
        fig = go.Figure()
        fig.add_annotation(
            text=message,
            xref="paper", yref="paper",
            x=0.5, y=0.5,
            showarrow=False,
            font=dict(size=16, color="gray"),
        )
        fig.update_layout(
            template=self.template,
            xaxis=dict(visible=False),
            yaxis=dict(visible=False),
        )
        return fig

    def save_html(self, fig: go.Figure, filepath: Union[str, Path], include_plotlyjs: bool = True) -> Path:
        """
        Save figure to an HTML file.

        Args:
            fig: Plotly Figure object
            filepath: Output file path
            include_plotlyjs: Whether to include plotly.js in the file
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        fig.write_html(
            str(filepath),
            include_plotlyjs=include_plotlyjs,
            full_html=True,
        )
        logger.info(f"Saved: {filepath}")
        return filepath
