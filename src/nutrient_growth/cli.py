from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

import click
import requests

from nutrient_growth.config import (
    CORRECTION_METHODS,
    DEFAULT_CORRECTION_METHOD,
    DEFAULT_DATA_URL,
    DEFAULT_SIGNIFICANCE_THRESHOLD,
    AnalysisConfig,
)
from nutrient_growth.fetch import DatasetCache, is_url
from nutrient_growth.pipeline import load_tidy, run_analysis
from nutrient_growth.plotting import ExpressionPlotter, select_genes

logger = logging.getLogger(__name__)


def resolve_source(source: str, refresh: bool = False) -> Path:
    """Local path for a SOURCE argument, downloading URLs into the cache."""
    if is_url(source):
        return DatasetCache().get(source, refresh=refresh)
    path = Path(source)
    if not path.exists():
        raise click.BadParameter(f"File not found: {source}", param_hint="SOURCE")
    return path


@click.group()
@click.option("--verbose", is_flag=True, help="Enable verbose logging.")
def cli(verbose: bool) -> None:
    """Growth-rate regression analysis of nutrient-limited expression data."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command("fetch")
@click.option(
    "--url",
    default=DEFAULT_DATA_URL,
    show_default=True,
    help="Dataset URL to download.",
)
@click.option(
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Copy the downloaded file here (defaults to the cache only).",
)
@click.option("--refresh", is_flag=True, help="Download even if a cached copy exists.")
def fetch_command(url: str, output: Optional[Path], refresh: bool) -> None:
    """Download the raw expression table into the local cache."""
    try:
        path = DatasetCache().get(url, refresh=refresh)
    except requests.RequestException as exc:
        raise click.ClickException(f"Download failed: {exc}") from exc

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(path.read_bytes())
        path = output
    click.echo(f"Dataset available at {path}")


@cli.command("analyze")
@click.argument("source", default=DEFAULT_DATA_URL)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("results"),
    show_default=True,
    help="Directory for the result tables.",
)
@click.option(
    "--method",
    type=click.Choice(sorted(CORRECTION_METHODS)),
    default=DEFAULT_CORRECTION_METHOD,
    show_default=True,
    help="Multiple-testing correction applied to the slope p-values.",
)
@click.option(
    "--threshold",
    type=click.FloatRange(0, 1, min_open=True),
    default=DEFAULT_SIGNIFICANCE_THRESHOLD,
    show_default=True,
    help="q-value cutoff for the per-nutrient summary.",
)
@click.option(
    "--max-workers",
    type=click.IntRange(1, 64),
    default=1,
    show_default=True,
    help="Threads used to fit the per-gene regressions.",
)
@click.option("--top", type=click.IntRange(0, 1000), default=10, show_default=True,
              help="Number of strongest slopes to print.")
def analyze_command(
    source: str,
    output_dir: Path,
    method: str,
    threshold: float,
    max_workers: int,
    top: int,
) -> None:
    """Fit per-gene regressions of expression on growth rate.

    SOURCE is a path to the tab-separated table or an http(s) URL.
    """
    config = AnalysisConfig(
        correction_method=method,
        significance_threshold=threshold,
        max_workers=max_workers,
    )
    try:
        path = resolve_source(source)
        result = run_analysis(path, config)
    except requests.RequestException as exc:
        raise click.ClickException(f"Download failed: {exc}") from exc
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc

    result.save(output_dir)

    click.echo(
        f"{result.n_groups} groups fitted, {result.n_degenerate} without a test, "
        f"{len(result.slopes)} slopes adjusted ({method})."
    )
    click.echo(f"Significant slopes per nutrient (q < {threshold}):")
    for row in result.summary.itertuples(index=False):
        click.echo(f"  {row.nutrient:<10} {row.n_significant:>6} / {row.n_tested}")

    if top:
        click.echo(f"Top {top} slopes:")
        for row in result.top_slopes(top).itertuples(index=False):
            label = row.name or row.systematic_name
            click.echo(
                f"  {label:<12} {row.systematic_name:<10} {row.nutrient:<10} "
                f"slope={row.estimate:+.3f} q={row.q_value:.2e}"
            )
    click.echo(f"Results written to {output_dir}")


@cli.command("plot")
@click.argument("source", default=DEFAULT_DATA_URL)
@click.option(
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="HTML file to write.",
)
@click.option("--gene", "names", multiple=True, help="Gene display name (repeat for several).")
@click.option(
    "--systematic-name",
    "systematic_names",
    multiple=True,
    help="Systematic gene name (repeat for several).",
)
@click.option("--process", "biological_process", default=None, help="Biological process annotation.")
@click.option("--free-y", is_flag=True, help="Give each panel its own y axis range.")
@click.option("--wrap", type=click.IntRange(1, 12), default=4, show_default=True,
              help="Panels per row.")
def plot_command(
    source: str,
    output: Path,
    names: Iterable[str],
    systematic_names: Iterable[str],
    biological_process: Optional[str],
    free_y: bool,
    wrap: int,
) -> None:
    """Plot expression against growth rate for selected genes."""
    if not (names or systematic_names or biological_process):
        raise click.UsageError("Select genes with --gene, --systematic-name or --process.")

    try:
        path = resolve_source(source)
        tidy = load_tidy(path)
        selected = select_genes(
            tidy,
            names=names or None,
            systematic_names=systematic_names or None,
            biological_process=biological_process,
        )
    except requests.RequestException as exc:
        raise click.ClickException(f"Download failed: {exc}") from exc
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc

    plotter = ExpressionPlotter()
    fig = plotter.plot_expression(selected, free_y=free_y, facet_col_wrap=wrap)
    plotter.save_html(fig, output)
    click.echo(f"Plotted {selected['systematic_name'].nunique()} genes to {output}")


def main() -> None:  # pragma: no cover
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()
