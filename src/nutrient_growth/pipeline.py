"""
Analysis pipeline orchestrator.

Chains parsing, enrichment, grouped regression and multiple-testing
correction into a single call with no state outside its arguments.
"""

import logging
import time
from pathlib import Path
from typing import Optional

import pandas as pd

from .config import AnalysisConfig
from .correction import adjust_slope_terms, summarize_significance
from .enrich import enrich
from .parser import Source, parse_expression_data
from .regression import fit_groups
from .results import AnalysisProvenance, AnalysisResult

logger = logging.getLogger(__name__)


def describe_source(source: Source) -> str:
    """Short human-readable description of an input source."""
    if isinstance(source, (str, Path)):
        return str(source)
    if isinstance(source, bytes):
        return f"<{len(source)} bytes>"
    return getattr(source, "name", repr(source))


def load_tidy(source: Source, config: Optional[AnalysisConfig] = None) -> pd.DataFrame:
    """
    Parse and enrich a raw expression table.

    Args:
        source: Path, raw bytes or buffer of the TSV file
        config: Parsing configuration (defaults if None)

    Returns:
        Tidy table: one row per gene, nutrient and rate with a measured value
    """
    config = config or AnalysisConfig()
    long_df = parse_expression_data(source, config)
    tidy = enrich(long_df)
    logger.info(
        f"Tidy table: {len(tidy)} rows, {tidy['systematic_name'].nunique()} genes, "
        f"{tidy['nutrient'].nunique()} nutrients"
    )
    return tidy


def analyze_tidy(
    tidy: pd.DataFrame,
    config: Optional[AnalysisConfig] = None,
    source: str = "<tidy table>",
) -> AnalysisResult:
    """
    Fit per-group regressions on a tidy table and adjust the slopes.

    Args:
        tidy: Tidy expression table
        config: Analysis configuration (defaults if None)
        source: Description recorded in the provenance

    Returns:
        AnalysisResult with terms, adjusted slopes and per-nutrient summary
    """
    config = config or AnalysisConfig()

    terms = fit_groups(tidy, max_workers=config.max_workers)
    slopes = adjust_slope_terms(terms, config.correction_method)
    summary = summarize_significance(slopes, config.significance_threshold)

    provenance = AnalysisProvenance.create(
        source=source,
        correction_method=config.correction_method,
        significance_threshold=config.significance_threshold,
        tidy=tidy,
        terms=terms,
        slopes=slopes,
    )
    return AnalysisResult(
        tidy=tidy,
        terms=terms,
        slopes=slopes,
        summary=summary,
        provenance=provenance,
    )


def run_analysis(source: Source, config: Optional[AnalysisConfig] = None) -> AnalysisResult:
    """
    Run the full pipeline on a raw expression table.

    Args:
        source: Path, raw bytes or buffer of the TSV file
        config: Analysis configuration (defaults if None)

    Returns:
        AnalysisResult
    """
    config = config or AnalysisConfig()
    start = time.time()

    logger.info(f"Loading expression data from {describe_source(source)}")
    tidy = load_tidy(source, config)
    result = analyze_tidy(tidy, config, source=describe_source(source))

    logger.info(
        f"Analysis complete in {time.time() - start:.1f}s: "
        f"{result.n_groups} groups, {result.n_degenerate} degenerate, "
        f"{result.n_significant} significant slopes (q < {config.significance_threshold})"
    )
    return result
