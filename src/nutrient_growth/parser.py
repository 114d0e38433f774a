"""
Expression table parser.

Parses the tab-separated growth-rate expression table and reshapes it
into long format:
- the compound annotation column ("NAME") is split into gene fields
- bookkeeping columns (GID, YORF, GWEIGHT) are dropped
- every sample column (e.g. "G0.05") becomes one row per gene, tagged
  with its nutrient code and growth rate
"""

import io
import logging
import re
from pathlib import Path
from typing import IO, Iterable, List, Optional, Tuple, Union

import pandas as pd

from .config import (
    ANNOTATION_FIELDS,
    GENE_FIELDS,
    LONG_COLUMNS,
    NUTRIENT_LABELS,
    AnalysisConfig,
)

logger = logging.getLogger(__name__)

Source = Union[str, Path, bytes, IO]

# <code><numeral>, e.g. G0.05, U0.3, L.1
_SAMPLE_LABEL = re.compile(r"^(?P<code>[A-Za-z])(?P<rate>\d+(?:\.\d*)?|\.\d+)$")


class SchemaError(ValueError):
    """Raised when the input table violates the expected layout or vocabulary."""


def read_expression_table(source: Source, config: Optional[AnalysisConfig] = None) -> pd.DataFrame:
    """
    Read the raw expression table.

    Args:
        source: Path to the TSV file, its raw bytes, or an open text/binary buffer
        config: Parsing configuration (defaults if None)

    Returns:
        DataFrame with one row per array feature, columns as in the file

    Raises:
        SchemaError: if the annotation column is missing
    """
    config = config or AnalysisConfig()
    if isinstance(source, bytes):
        source = io.BytesIO(source)

    df = pd.read_csv(source, sep="\t", encoding="utf-8")

    if config.annotation_column not in df.columns:
        raise SchemaError(
            f"Annotation column {config.annotation_column!r} not found in header: "
            f"{list(df.columns)}"
        )

    logger.debug(f"Read expression table: {len(df)} rows, {len(df.columns)} columns")
    return df


def _file_line(row: int) -> int:
    """Line number in the file of the data row at position row (header is line 1)."""
    return row + 2


def split_annotation(
    df: pd.DataFrame,
    column: str = "NAME",
    delimiter: str = "||",
) -> pd.DataFrame:
    """
    Split the compound annotation column into gene fields.

    Each value must split into exactly five parts: name, biological
    process, molecular function, systematic name and a numeric
    identifier. Parts are whitespace-trimmed and the identifier is dropped.

    Args:
        df: Raw expression table
        column: Compound annotation column
        delimiter: Literal separator between parts

    Returns:
        Copy of df with the compound column replaced by the gene fields
        (placed first)

    Raises:
        SchemaError: if a value is missing or does not split into five
            parts; the message gives the line number in the file
    """
    values = df[column].reset_index(drop=True)
    missing = values.isna()
    if missing.any():
        row = int(missing.idxmax())
        raise SchemaError(f"Line {_file_line(row)}: empty {column!r} annotation")

    parts = values.astype(str).str.split(delimiter, regex=False)
    counts = parts.str.len()
    bad = counts != len(ANNOTATION_FIELDS)
    if bad.any():
        row = int(bad.idxmax())
        raise SchemaError(
            f"Line {_file_line(row)}: {column!r} value {values[row]!r} splits into {counts[row]} "
            f"parts on {delimiter!r}, expected {len(ANNOTATION_FIELDS)} "
            f"({bad.sum()} malformed rows in total)"
        )

    fields = pd.DataFrame(parts.tolist(), index=df.index, columns=list(ANNOTATION_FIELDS))
    for field_name in GENE_FIELDS:
        fields[field_name] = fields[field_name].str.strip()

    rest = df.drop(columns=[column])
    return pd.concat([fields[list(GENE_FIELDS)], rest], axis=1)


def parse_sample_label(label: str) -> Tuple[str, float]:
    """
    Split a sample column header into its nutrient code and growth rate.

    >>> parse_sample_label("G0.05")
    ('G', 0.05)

    Raises:
        SchemaError: if the label is malformed or the code is unknown
    """
    match = _SAMPLE_LABEL.match(str(label))
    if not match:
        raise SchemaError(
            f"Column {label!r} is not a sample column of the form <nutrient code><rate>"
        )
    code = match.group("code")
    if code not in NUTRIENT_LABELS:
        raise SchemaError(
            f"Column {label!r} has unknown nutrient code {code!r} "
            f"(expected one of {', '.join(NUTRIENT_LABELS)})"
        )
    return code, float(match.group("rate"))


def format_sample_label(code: str, rate: float) -> str:
    """Inverse of parse_sample_label for canonical labels."""
    return f"{code}{rate!r}"


def find_sample_columns(
    columns: Iterable[str],
    config: Optional[AnalysisConfig] = None,
) -> List[str]:
    """
    Return the sample columns of a header, in header order.

    Every column that is neither the annotation column, a gene field, nor
    a configured bookkeeping column must be a valid sample label, with
    the rate written as format_sample_label writes it ("G0.1", not
    "G0.10" or "G.1").

    Raises:
        SchemaError: on the first column that is not a valid sample label,
            or when no sample column is present
    """
    config = config or AnalysisConfig()
    skip = {config.annotation_column, *config.drop_columns, *GENE_FIELDS}

    samples = []
    for column in columns:
        if column in skip:
            continue
        code, rate = parse_sample_label(column)
        canonical = format_sample_label(code, rate)
        if canonical != column:
            raise SchemaError(
                f"Column {column!r} writes its rate in non-canonical form "
                f"(expected {canonical!r})"
            )
        samples.append(column)

    if not samples:
        raise SchemaError("No sample columns found in header")
    return samples


def _ensure_numeric(df: pd.DataFrame, sample_columns: List[str]) -> pd.DataFrame:
    """Coerce sample columns to float, failing on non-numeric cells."""
    df = df.copy()
    for column in sample_columns:
        if pd.api.types.is_numeric_dtype(df[column]):
            df[column] = df[column].astype(float)
            continue
        try:
            df[column] = pd.to_numeric(df[column], errors="raise").astype(float)
        except (TypeError, ValueError) as e:
            raise SchemaError(f"Sample column {column!r} contains non-numeric values: {e}") from e
    return df


def reshape_long(df: pd.DataFrame, sample_columns: List[str]) -> pd.DataFrame:
    """
    Reshape the wide table into one row per (gene row, sample column).

    Args:
        df: Table with the gene fields and the sample columns
        sample_columns: Validated sample column names

    Returns:
        DataFrame with columns: name, biological_process,
        molecular_function, systematic_name, sample, nutrient, rate, expression
    """
    long_df = df.melt(
        id_vars=list(GENE_FIELDS),
        value_vars=sample_columns,
        var_name="sample",
        value_name="expression",
    )

    labels = {label: parse_sample_label(label) for label in sample_columns}
    long_df["nutrient"] = long_df["sample"].map(lambda s: labels[s][0])
    long_df["rate"] = long_df["sample"].map(lambda s: labels[s][1]).astype(float)

    return long_df[list(LONG_COLUMNS)]


def parse_expression_data(source: Source, config: Optional[AnalysisConfig] = None) -> pd.DataFrame:
    """
    Parse a raw expression table into long format.

    Reads the table, splits the annotation column, drops bookkeeping
    columns and reshapes the sample columns into rows.

    Args:
        source: Path, raw bytes or buffer of the TSV file
        config: Parsing configuration (defaults if None)

    Returns:
        Long-format DataFrame (see reshape_long)
    """
    config = config or AnalysisConfig()

    raw = read_expression_table(source, config)
    sample_columns = find_sample_columns(raw.columns, config)

    dropped = [c for c in config.drop_columns if c in raw.columns]
    raw = raw.drop(columns=dropped)

    genes = split_annotation(raw, config.annotation_column, config.annotation_delimiter)
    genes = _ensure_numeric(genes, sample_columns)

    long_df = reshape_long(genes, sample_columns)
    logger.info(
        f"Parsed {len(genes)} genes x {len(sample_columns)} samples "
        f"into {len(long_df)} rows (dropped columns: {dropped or 'none'})"
    )
    return long_df
