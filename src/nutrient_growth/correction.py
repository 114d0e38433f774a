"""
Multiple-testing correction of the slope p-values.

The adjustment runs once over every slope p-value collected from the
regression step; it is not decomposable across subsets, so callers must
pass the complete set.
"""

import logging
from typing import Sequence

import numpy as np
import pandas as pd
from statsmodels.stats.multitest import multipletests

from .config import (
    DEFAULT_CORRECTION_METHOD,
    DEFAULT_SIGNIFICANCE_THRESHOLD,
    SLOPE_TERM,
    resolve_correction_method,
)

logger = logging.getLogger(__name__)


def adjust_pvalues(p_values: Sequence[float], method: str = DEFAULT_CORRECTION_METHOD) -> np.ndarray:
    """
    Adjust a vector of p-values for multiple comparisons.

    Args:
        p_values: Raw p-values, none missing
        method: Correction procedure (statsmodels name or R spelling,
            e.g. "holm", "BH")

    Returns:
        Adjusted p-values, aligned with the input

    Raises:
        ValueError: for an empty vector, missing values, values outside
            [0, 1], or an unknown method
    """
    sm_method = resolve_correction_method(method)
    p = np.asarray(p_values, dtype=float)

    if p.size == 0:
        raise ValueError("Cannot adjust an empty vector of p-values")
    if np.isnan(p).any():
        raise ValueError(f"{int(np.isnan(p).sum())} p-values are missing; filter them before adjusting")
    if ((p < 0) | (p > 1)).any():
        raise ValueError("p-values must lie in [0, 1]")

    # Stable order so that ties and permutations of the input give identical results
    order = np.argsort(p, kind="mergesort")
    _, adjusted_sorted, _, _ = multipletests(p[order], method=sm_method, is_sorted=True)

    adjusted = np.empty_like(adjusted_sorted)
    adjusted[order] = adjusted_sorted
    return adjusted


def adjust_slope_terms(terms: pd.DataFrame, method: str = DEFAULT_CORRECTION_METHOD) -> pd.DataFrame:
    """
    Add q-values to the slope terms of a regression table.

    Args:
        terms: regression.fit_groups output
        method: Correction procedure

    Returns:
        Rows with term == "rate" and a p-value, plus a q_value column

    Raises:
        ValueError: if no slope term has a p-value
    """
    slopes = terms[(terms["term"] == SLOPE_TERM) & terms["p_value"].notna()].copy()
    if slopes.empty:
        raise ValueError("No slope terms with a p-value to adjust")

    slopes["q_value"] = adjust_pvalues(slopes["p_value"].to_numpy(), method)
    logger.info(f"Adjusted {len(slopes)} slope p-values ({method})")
    return slopes.reset_index(drop=True)


def summarize_significance(
    adjusted: pd.DataFrame,
    threshold: float = DEFAULT_SIGNIFICANCE_THRESHOLD,
) -> pd.DataFrame:
    """
    Count significant slopes per nutrient.

    Returns:
        DataFrame with columns nutrient, n_tested, n_significant, sorted
        by n_significant (largest first)
    """
    significant = adjusted["q_value"] < threshold
    summary = (
        adjusted.assign(significant=significant)
        .groupby("nutrient", observed=True, sort=True)["significant"]
        .agg(n_tested="size", n_significant="sum")
        .reset_index()
    )
    summary["n_significant"] = summary["n_significant"].astype(int)
    summary["n_tested"] = summary["n_tested"].astype(int)
    return summary.sort_values("n_significant", ascending=False, kind="mergesort").reset_index(drop=True)
