"""
Per-gene linear regression of expression on growth rate.

Each (name, systematic_name, nutrient) group is fitted independently with
ordinary least squares, expression ~ rate. The closed-form solution is
used so that results are reproducible for identical input, and groups
where the fit is undefined yield NaN statistics instead of raising.
"""

import functools
import logging
import math
from concurrent.futures import ThreadPoolExecutor
from typing import List, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats

from .config import GROUP_COLUMNS, INTERCEPT_TERM, SLOPE_TERM, STAT_COLUMNS
from .results import RegressionTerm

logger = logging.getLogger(__name__)


def _undefined_terms(n_obs: int) -> List[RegressionTerm]:
    nan = math.nan
    return [
        RegressionTerm(INTERCEPT_TERM, nan, nan, nan, nan, n_obs),
        RegressionTerm(SLOPE_TERM, nan, nan, nan, nan, n_obs),
    ]


def fit_ols(rate: Sequence[float], expression: Sequence[float]) -> List[RegressionTerm]:
    """
    Fit expression = intercept + slope * rate by least squares.

    Args:
        rate: Predictor values
        expression: Response values, same length as rate

    Returns:
        Two terms, "(Intercept)" then "rate", with estimate, standard
        error, t statistic and two-sided p-value (n - 2 degrees of freedom).
        With fewer than two observations or distinct rates every statistic
        is NaN; with exactly two points only the estimates are defined.
        Constant expression gives a slope of 0 with t = 0 and p = 1.
    """
    x = np.asarray(rate, dtype=float)
    y = np.asarray(expression, dtype=float)
    if x.shape != y.shape:
        raise ValueError(f"rate and expression differ in length ({x.size} vs {y.size})")

    n = int(x.size)
    if n < 2 or np.unique(x).size < 2:
        return _undefined_terms(n)

    x_mean = x.mean()
    # exact for constant expression, so the slope and residuals are exactly 0
    y_mean = y[0] if np.all(y == y[0]) else y.mean()
    dx = x - x_mean
    sxx = float(np.dot(dx, dx))

    slope = float(np.dot(dx, y - y_mean)) / sxx
    intercept = float(y_mean - slope * x_mean)
    estimates = np.array([intercept, slope])

    df_resid = n - 2
    if df_resid == 0:
        std_errors = np.full(2, np.nan)
    else:
        residuals = y - (intercept + slope * x)
        sigma2 = float(np.dot(residuals, residuals)) / df_resid
        std_errors = np.sqrt(sigma2 * np.array([1.0 / n + x_mean ** 2 / sxx, 1.0 / sxx]))

    # se == 0 (perfect fit) gives an infinite statistic and p == 0,
    # unless the estimate is 0 too: no evidence of an effect, t = 0 and p == 1
    with np.errstate(divide="ignore", invalid="ignore"):
        statistics = estimates / std_errors
    statistics[(std_errors == 0) & (estimates == 0)] = 0.0
    if df_resid == 0:
        p_values = np.full(2, np.nan)
    else:
        p_values = 2.0 * stats.t.sf(np.abs(statistics), df_resid)

    return [
        RegressionTerm(
            term=term,
            estimate=float(estimates[i]),
            std_error=float(std_errors[i]),
            statistic=float(statistics[i]),
            p_value=float(p_values[i]),
            n_obs=n,
        )
        for i, term in enumerate((INTERCEPT_TERM, SLOPE_TERM))
    ]


def _fit_group(item: Tuple[tuple, pd.DataFrame], group_cols: Sequence[str]) -> List[dict]:
    key, group = item
    terms = fit_ols(group["rate"].to_numpy(), group["expression"].to_numpy())
    return [dict(zip(group_cols, key), **term.to_dict()) for term in terms]


def fit_groups(
    tidy: pd.DataFrame,
    group_cols: Sequence[str] = GROUP_COLUMNS,
    max_workers: int = 1,
) -> pd.DataFrame:
    """
    Fit one regression per group of the tidy table.

    Args:
        tidy: Tidy expression table (enrich.enrich output)
        group_cols: Columns identifying a group
        max_workers: Threads used for fitting; groups are independent, and
            results are collected in group order either way

    Returns:
        DataFrame with columns: name, systematic_name, nutrient, term,
        estimate, std_error, statistic, p_value, n_obs (two rows per group)
    """
    group_cols = list(group_cols)
    fit = functools.partial(_fit_group, group_cols=group_cols)

    grouped = tidy.groupby(group_cols, sort=True, observed=True, dropna=False)
    groups = [(key if isinstance(key, tuple) else (key,), group) for key, group in grouped]

    if max_workers > 1 and len(groups) > 1:
        logger.debug(f"Fitting {len(groups)} groups on {max_workers} threads")
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            rows = [row for result in executor.map(fit, groups) for row in result]
    else:
        rows = [row for item in groups for row in fit(item)]

    terms = pd.DataFrame(rows, columns=group_cols + list(STAT_COLUMNS))
    for column in group_cols:
        terms[column] = terms[column].astype(tidy[column].dtype)
    terms["n_obs"] = terms["n_obs"].astype(int)

    n_degenerate = int(terms.loc[terms["term"] == SLOPE_TERM, "p_value"].isna().sum())
    if n_degenerate:
        logger.warning(
            f"{n_degenerate} of {len(groups)} groups have too few observations or "
            f"distinct rates for a test; their statistics are NaN"
        )
    logger.info(f"Fitted {len(groups)} regression groups")
    return terms


def center_intercepts(terms: pd.DataFrame) -> pd.DataFrame:
    """
    Center intercepts on each gene's mean across nutrients.

    Ranks genes by how far their baseline expression under one nutrient
    departs from their own cross-nutrient average.

    Returns:
        Intercept rows with a centered_intercept column, sorted by absolute
        deviation (largest first, NaN last)
    """
    intercepts = terms[terms["term"] == INTERCEPT_TERM].copy()
    gene_mean = intercepts.groupby("systematic_name")["estimate"].transform("mean")
    intercepts["centered_intercept"] = intercepts["estimate"] - gene_mean
    return intercepts.sort_values(
        "centered_intercept",
        key=lambda s: s.abs(),
        ascending=False,
        na_position="last",
        kind="mergesort",
    ).reset_index(drop=True)
