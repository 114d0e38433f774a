"""Growth-rate analysis of nutrient-limited yeast expression data.

Reshapes the tab-separated expression table into a tidy table, fits a
linear regression of expression on growth rate for every gene and
nutrient, and adjusts the slope p-values for multiple testing.

Usage::

    from nutrient_growth import AnalysisConfig, run_analysis

    result = run_analysis("Brauer2008_DataSet1.tds", AnalysisConfig(correction_method="BH"))
    print(result.summary)
    result.save("results/")
"""

from nutrient_growth.config import AnalysisConfig, NUTRIENT_LABELS
from nutrient_growth.correction import adjust_pvalues, adjust_slope_terms, summarize_significance
from nutrient_growth.enrich import enrich
from nutrient_growth.parser import SchemaError, parse_expression_data
from nutrient_growth.pipeline import analyze_tidy, load_tidy, run_analysis
from nutrient_growth.regression import center_intercepts, fit_groups, fit_ols
from nutrient_growth.results import AnalysisResult, RegressionTerm

__all__ = [
    "AnalysisConfig",
    "NUTRIENT_LABELS",
    "SchemaError",
    "parse_expression_data",
    "enrich",
    "fit_ols",
    "fit_groups",
    "center_intercepts",
    "adjust_pvalues",
    "adjust_slope_terms",
    "summarize_significance",
    "load_tidy",
    "analyze_tidy",
    "run_analysis",
    "AnalysisResult",
    "RegressionTerm",
]
