"""
Result containers for the growth-rate regression analysis.

These dataclasses carry the tables produced by the pipeline together with
the parameters needed to reproduce them.
"""

import json
import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Union

import pandas as pd

from .config import INTERCEPT_TERM, SLOPE_TERM

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegressionTerm:
    """
    One coefficient of a simple linear fit of expression on rate.

    Statistics are NaN when the fit is undefined for the group
    (too few observations or distinct rates).
    """

    term: str  # "(Intercept)" | "rate"
    estimate: float
    std_error: float
    statistic: float
    p_value: float
    n_obs: int

    @property
    def is_defined(self) -> bool:
        """True when the term has a usable p-value."""
        return not math.isnan(self.p_value)

    @property
    def is_slope(self) -> bool:
        return self.term == SLOPE_TERM

    @property
    def is_intercept(self) -> bool:
        return self.term == INTERCEPT_TERM

    def to_dict(self) -> dict:
        return asdict(self)

    def __repr__(self) -> str:
        p = f"{self.p_value:.2e}" if self.is_defined else "N/A"
        return f"RegressionTerm({self.term}, estimate={self.estimate:.3f}, p={p}, n={self.n_obs})"


@dataclass
class AnalysisProvenance:
    """Parameters and counts describing one pipeline run."""

    timestamp: str
    source: str
    correction_method: str
    significance_threshold: float
    n_rows: int
    n_genes: int
    n_groups: int
    n_degenerate_groups: int
    n_slopes_tested: int

    @classmethod
    def create(
        cls,
        source: str,
        correction_method: str,
        significance_threshold: float,
        tidy: pd.DataFrame,
        terms: pd.DataFrame,
        slopes: pd.DataFrame,
    ) -> "AnalysisProvenance":
        """Create a provenance record with the current timestamp."""
        slope_rows = terms[terms["term"] == SLOPE_TERM]
        return cls(
            timestamp=datetime.now().isoformat(),
            source=source,
            correction_method=correction_method,
            significance_threshold=significance_threshold,
            n_rows=len(tidy),
            n_genes=int(tidy["systematic_name"].nunique()),
            n_groups=len(slope_rows),
            n_degenerate_groups=int(slope_rows["p_value"].isna().sum()),
            n_slopes_tested=len(slopes),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


@dataclass
class AnalysisResult:
    """
    Complete output of one analysis run.

    Attributes:
        tidy: Tidy expression table (one row per gene, nutrient and rate)
        terms: All regression terms, two per (gene, nutrient) group
        slopes: Slope terms with a p-value, plus their q_value
        summary: Per-nutrient counts of significant slopes
        provenance: Parameters of the run
    """

    tidy: pd.DataFrame
    terms: pd.DataFrame
    slopes: pd.DataFrame
    summary: pd.DataFrame
    provenance: AnalysisProvenance

    @property
    def n_groups(self) -> int:
        return self.provenance.n_groups

    @property
    def n_degenerate(self) -> int:
        return self.provenance.n_degenerate_groups

    @property
    def n_significant(self) -> int:
        return int((self.slopes["q_value"] < self.provenance.significance_threshold).sum())

    def top_slopes(self, n: int = 10, nutrient: Optional[str] = None) -> pd.DataFrame:
        """Return the n slope terms with the smallest q-values."""
        slopes = self.slopes
        if nutrient is not None:
            slopes = slopes[slopes["nutrient"] == nutrient]
        return slopes.sort_values(["q_value", "p_value"], kind="mergesort").head(n)

    def save(self, output_dir: Union[str, Path]) -> Dict[str, Path]:
        """
        Write all tables as TSV and the provenance as JSON.

        Returns:
            Mapping of table name to written path
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        paths = {}
        for name in ("tidy", "terms", "slopes", "summary"):
            path = output_dir / f"{name}.tsv"
            getattr(self, name).to_csv(path, sep="\t", index=False)
            paths[name] = path

        path = output_dir / "provenance.json"
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.provenance.to_dict(), f, indent=2)
        paths["provenance"] = path

        logger.info(f"Wrote {len(paths)} result files to {output_dir}")
        return paths
