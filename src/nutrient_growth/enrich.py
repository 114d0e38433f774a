"""
Metadata enrichment for the long expression table.

Decodes single-letter nutrient codes into labels and removes rows that
cannot be analysed (missing expression or no systematic name).
"""

import logging
from typing import Iterable

import pandas as pd

from .config import NUTRIENT_LABELS, TIDY_COLUMNS
from .parser import SchemaError

logger = logging.getLogger(__name__)

NUTRIENT_CATEGORIES = pd.CategoricalDtype(list(NUTRIENT_LABELS.values()))


def decode_nutrients(codes: Iterable[str]) -> pd.Categorical:
    """
    Map nutrient codes to their labels.

    Args:
        codes: Single-letter nutrient codes (G, L, P, S, N, U)

    Returns:
        Categorical of labels, categories in lookup order

    Raises:
        SchemaError: if any code is not in the lookup
    """
    codes = pd.Series(list(codes), dtype=object)
    labels = codes.map(NUTRIENT_LABELS)

    unknown = codes[labels.isna()]
    if not unknown.empty:
        found = sorted(set(map(str, unknown)))
        raise SchemaError(
            f"Unknown nutrient code(s) {found} at {len(unknown)} row(s) "
            f"(first at position {unknown.index[0]}); expected one of {', '.join(NUTRIENT_LABELS)}"
        )

    return pd.Categorical(labels, dtype=NUTRIENT_CATEGORIES)


def filter_valid_rows(df: pd.DataFrame) -> pd.DataFrame:
    """Drop rows with missing expression or an empty systematic name."""
    systematic = df["systematic_name"]
    has_id = systematic.notna() & (systematic.astype(str).str.strip() != "")
    has_value = df["expression"].notna()
    keep = has_id & has_value

    n_dropped = int((~keep).sum())
    if n_dropped:
        logger.info(
            f"Dropped {n_dropped} rows ({int((~has_value).sum())} missing expression, "
            f"{int((~has_id).sum())} without systematic name)"
        )
    return df.loc[keep].reset_index(drop=True)


def enrich(long_df: pd.DataFrame) -> pd.DataFrame:
    """
    Turn the parsed long table into the tidy table.

    Args:
        long_df: Output of parser.parse_expression_data

    Returns:
        DataFrame with columns: name, biological_process,
        molecular_function, systematic_name, nutrient, rate, expression
    """
    tidy = long_df.copy()
    tidy["nutrient"] = decode_nutrients(tidy["nutrient"])
    tidy = filter_valid_rows(tidy)
    return tidy[list(TIDY_COLUMNS)]
