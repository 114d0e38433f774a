"""Constants and configuration for the nutrient growth-rate analysis.

Defines the fixed nutrient vocabulary, the column layout of every table
the pipeline produces, and a configuration dataclass controlling the
parsing and statistics options.
"""

import os
from dataclasses import dataclass
from typing import Dict, Tuple

# =============================================================================
# Vocabulary
# =============================================================================

# Closed set of limiting-nutrient codes, in the order used for categoricals
NUTRIENT_LABELS: Dict[str, str] = {
    "G": "Glucose",
    "L": "Leucine",
    "P": "Phosphate",
    "S": "Sulfate",
    "N": "Ammonia",
    "U": "Uracil",
}

# =============================================================================
# Table layouts
# =============================================================================

# Parts of the compound annotation column, in order. "number" is discarded.
ANNOTATION_FIELDS: Tuple[str, ...] = (
    "name",
    "biological_process",
    "molecular_function",
    "systematic_name",
    "number",
)
GENE_FIELDS: Tuple[str, ...] = ANNOTATION_FIELDS[:4]

LONG_COLUMNS: Tuple[str, ...] = GENE_FIELDS + ("sample", "nutrient", "rate", "expression")
TIDY_COLUMNS: Tuple[str, ...] = GENE_FIELDS + ("nutrient", "rate", "expression")

GROUP_COLUMNS: Tuple[str, ...] = ("name", "systematic_name", "nutrient")
STAT_COLUMNS: Tuple[str, ...] = (
    "term",
    "estimate",
    "std_error",
    "statistic",
    "p_value",
    "n_obs",
)
TERM_COLUMNS: Tuple[str, ...] = GROUP_COLUMNS + STAT_COLUMNS

INTERCEPT_TERM = "(Intercept)"
SLOPE_TERM = "rate"

# =============================================================================
# Input defaults
# =============================================================================

DEFAULT_ANNOTATION_COLUMN = "NAME"
DEFAULT_ANNOTATION_DELIMITER = "||"
DEFAULT_DROP_COLUMNS: Tuple[str, ...] = ("GID", "YORF", "GWEIGHT")

DEFAULT_DATA_URL = os.environ.get(
    "NUTRIENT_GROWTH_DATA_URL",
    "http://varianceexplained.org/files/Brauer2008_DataSet1.tds",
)

# =============================================================================
# Multiple-testing methods
# =============================================================================

DEFAULT_CORRECTION_METHOD = "holm"
DEFAULT_SIGNIFICANCE_THRESHOLD = 0.01

# statsmodels method names, plus the spellings R's p.adjust uses
CORRECTION_METHODS: Dict[str, str] = {
    "holm": "holm",
    "bonferroni": "bonferroni",
    "hommel": "hommel",
    "hochberg": "simes-hochberg",
    "simes-hochberg": "simes-hochberg",
    "holm-sidak": "holm-sidak",
    "sidak": "sidak",
    "BH": "fdr_bh",
    "fdr": "fdr_bh",
    "fdr_bh": "fdr_bh",
    "BY": "fdr_by",
    "fdr_by": "fdr_by",
}


def resolve_correction_method(method: str) -> str:
    """Return the statsmodels name for a correction method.

    Raises:
        ValueError: if the method is not a known procedure.
    """
    try:
        return CORRECTION_METHODS[method]
    except KeyError:
        known = ", ".join(sorted(CORRECTION_METHODS))
        raise ValueError(
            f"Unknown p-value correction method {method!r} (expected one of: {known})"
        ) from None


@dataclass
class AnalysisConfig:
    """Configuration for parsing and testing the expression table.

    Attributes:
        annotation_column: Header of the compound gene annotation column.
        annotation_delimiter: Literal separator between annotation parts.
        drop_columns: Bookkeeping columns removed before reshaping. Columns
            listed here but absent from the file are ignored.
        correction_method: Multiple-testing procedure applied to the slope
            p-values (statsmodels name or R spelling).
        significance_threshold: q-value cutoff used by the per-nutrient
            summary.
        max_workers: Threads used to fit regression groups (1 = sequential).
    """

    annotation_column: str = DEFAULT_ANNOTATION_COLUMN
    annotation_delimiter: str = DEFAULT_ANNOTATION_DELIMITER
    drop_columns: Tuple[str, ...] = DEFAULT_DROP_COLUMNS
    correction_method: str = DEFAULT_CORRECTION_METHOD
    significance_threshold: float = DEFAULT_SIGNIFICANCE_THRESHOLD
    max_workers: int = 1

    def __post_init__(self):
        """Validate configuration."""
        resolve_correction_method(self.correction_method)
        if not 0 < self.significance_threshold <= 1:
            raise ValueError(
                f"significance_threshold must be in (0, 1], got {self.significance_threshold}"
            )
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")
        if not self.annotation_delimiter:
            raise ValueError("annotation_delimiter must not be empty")
        self.drop_columns = tuple(self.drop_columns)
