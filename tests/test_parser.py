"""Unit tests for the expression table parser."""

import numpy as np
import pandas as pd
import pytest

from nutrient_growth.config import AnalysisConfig, LONG_COLUMNS
from nutrient_growth.parser import (
    SchemaError,
    find_sample_columns,
    format_sample_label,
    parse_expression_data,
    parse_sample_label,
    read_expression_table,
    split_annotation,
)

HEADER = ["GID", "YORF", "NAME", "GWEIGHT", "G0.05", "G0.1", "L0.05", "U0.3"]

ROWS = [
    ["GENE1331X", "A_06_P5820", "SFB2       || ER to Golgi transport || molecular function unknown || YNL049C || 1082129",
     "1", "-0.24", "-0.13", "-0.3", "0.16"],
    ["GENE4924X", "A_06_P5866", "           || biological process unknown || molecular function unknown || YNL095C || 1086222",
     "1", "0.28", "0.13", "", "0.07"],
    ["GENE4690X", "A_06_P1834", "QRI7       || proteolysis and peptidolysis || metalloendopeptidase activity || YDL104C || 1085955",
     "1", "-0.02", "-0.27", "-0.21", "-0.12"],
]


def _make_tsv(rows=ROWS, header=HEADER) -> bytes:
    lines = ["\t".join(header)] + ["\t".join(row) for row in rows]
    return ("\n".join(lines) + "\n").encode("utf-8")


class TestSampleLabels:

    @pytest.mark.parametrize("label, expected", [
        ("G0.05", ("G", 0.05)),
        ("U0.3", ("U", 0.3)),
        ("N0.1", ("N", 0.1)),
        ("P1", ("P", 1.0)),
        ("S.25", ("S", 0.25)),
    ])
    def test_parse(self, label, expected):
        assert parse_sample_label(label) == expected

    @pytest.mark.parametrize("label", ["G0.05", "L0.1", "P0.2", "S0.25", "N0.3", "U0.05"])
    def test_round_trip(self, label):
        code, rate = parse_sample_label(label)
        assert format_sample_label(code, rate) == label

    @pytest.mark.parametrize("label", ["G", "0.05", "GG0.1", "G0.1x", "notes", ""])
    def test_malformed_label_raises(self, label):
        with pytest.raises(SchemaError):
            parse_sample_label(label)

    def test_unknown_code_raises(self):
        with pytest.raises(SchemaError, match="unknown nutrient code 'X'"):
            parse_sample_label("X0.05")

    def test_lowercase_code_is_unknown(self):
        with pytest.raises(SchemaError):
            parse_sample_label("g0.05")


class TestFindSampleColumns:

    def test_skips_bookkeeping_and_annotation(self):
        assert find_sample_columns(HEADER) == ["G0.05", "G0.1", "L0.05", "U0.3"]

    def test_rejects_unexpected_column(self):
        with pytest.raises(SchemaError, match="'comment'"):
            find_sample_columns(HEADER + ["comment"])

    def test_rejects_unknown_nutrient(self):
        with pytest.raises(SchemaError, match="Z0.1"):
            find_sample_columns(HEADER + ["Z0.1"])

    @pytest.mark.parametrize("label, canonical", [("G1", "G1.0"), ("G.5", "G0.5"), ("G0.10", "G0.1")])
    def test_rejects_non_canonical_rate(self, label, canonical):
        with pytest.raises(SchemaError, match=f"expected '{canonical}'"):
            find_sample_columns(HEADER + [label])

    @pytest.mark.parametrize("label", ["G1.0", "G0.5", "G0.1", "U0.25"])
    def test_accepted_columns_round_trip(self, label):
        [column] = find_sample_columns(["NAME", label])
        assert format_sample_label(*parse_sample_label(column)) == label

    def test_no_samples_raises(self):
        with pytest.raises(SchemaError, match="No sample columns"):
            find_sample_columns(["GID", "NAME"])

    def test_custom_drop_columns(self):
        config = AnalysisConfig(drop_columns=("GID", "YORF", "GWEIGHT", "comment"))
        assert find_sample_columns(HEADER + ["comment"], config) == ["G0.05", "G0.1", "L0.05", "U0.3"]


class TestSplitAnnotation:

    def test_fields_are_trimmed(self):
        df = pd.DataFrame({"NAME": ["  LEU1 || leucine biosynthesis ||  3-isopropylmalate dehydratase || YGL009C || 1 "]})
        out = split_annotation(df)

        assert list(out.columns) == ["name", "biological_process", "molecular_function", "systematic_name"]
        row = out.iloc[0]
        assert row["name"] == "LEU1"
        assert row["biological_process"] == "leucine biosynthesis"
        assert row["molecular_function"] == "3-isopropylmalate dehydratase"
        assert row["systematic_name"] == "YGL009C"

    def test_empty_parts_are_kept_as_empty_strings(self):
        df = pd.DataFrame({"NAME": [" || process || function ||  || 1"]})
        out = split_annotation(df)
        assert out.loc[0, "name"] == ""
        assert out.loc[0, "systematic_name"] == ""

    def test_too_few_parts_raises_with_row(self):
        df = pd.DataFrame({"NAME": ["A || b || c || Y1 || 1", "B || b || c || 2"]})
        with pytest.raises(SchemaError, match="Line 3"):
            split_annotation(df)

    def test_too_many_parts_raises(self):
        df = pd.DataFrame({"NAME": ["A || b || c || Y1 || 1 || extra"]})
        with pytest.raises(SchemaError, match="6 parts"):
            split_annotation(df)

    def test_single_pipe_is_not_a_delimiter(self):
        df = pd.DataFrame({"NAME": ["A | b || c || d || Y1 || 1"]})
        out = split_annotation(df)
        assert out.loc[0, "name"] == "A | b"

    def test_missing_value_raises(self):
        df = pd.DataFrame({"NAME": ["A || b || c || Y1 || 1", None]})
        with pytest.raises(SchemaError, match="Line 3"):
            split_annotation(df)

    def test_other_columns_are_kept(self):
        df = pd.DataFrame({"NAME": ["A || b || c || Y1 || 1"], "G0.05": [0.5]})
        out = split_annotation(df)
        assert out.loc[0, "G0.05"] == 0.5


class TestReadExpressionTable:

    def test_reads_bytes(self):
        df = read_expression_table(_make_tsv())
        assert list(df.columns) == HEADER
        assert len(df) == 3

    def test_reads_path(self, tmp_path):
        path = tmp_path / "data.tds"
        path.write_bytes(_make_tsv())
        assert len(read_expression_table(path)) == 3

    def test_missing_annotation_column_raises(self):
        header = ["GID", "LABEL", "G0.05"]
        rows = [["G1", "x || y || z || Y1 || 1", "0.1"]]
        with pytest.raises(SchemaError, match="'NAME'"):
            read_expression_table(_make_tsv(rows, header))


class TestParseExpressionData:

    def test_shape_and_columns(self):
        long_df = parse_expression_data(_make_tsv())

        assert list(long_df.columns) == list(LONG_COLUMNS)
        assert len(long_df) == 3 * 4
        for dropped in ("GID", "YORF", "GWEIGHT", "number"):
            assert dropped not in long_df.columns

    def test_nutrient_and_rate_from_sample(self):
        long_df = parse_expression_data(_make_tsv())

        row = long_df[(long_df["systematic_name"] == "YNL049C") & (long_df["sample"] == "U0.3")].iloc[0]
        assert row["nutrient"] == "U"
        assert row["rate"] == pytest.approx(0.3)
        assert row["expression"] == pytest.approx(0.16)
        assert row["name"] == "SFB2"

    def test_sample_round_trip(self):
        long_df = parse_expression_data(_make_tsv())
        rebuilt = [format_sample_label(c, r) for c, r in zip(long_df["nutrient"], long_df["rate"])]
        assert rebuilt == list(long_df["sample"])

    def test_missing_expression_is_nan(self):
        long_df = parse_expression_data(_make_tsv())
        row = long_df[(long_df["systematic_name"] == "YNL095C") & (long_df["sample"] == "L0.05")]
        assert np.isnan(row["expression"].iloc[0])

    def test_rate_is_float(self):
        long_df = parse_expression_data(_make_tsv())
        assert long_df["rate"].dtype == float
        assert long_df["expression"].dtype == float

    def test_non_numeric_expression_raises(self):
        rows = [list(ROWS[0])]
        rows[0][4] = "n/a?"
        with pytest.raises(SchemaError, match="G0.05"):
            parse_expression_data(_make_tsv(rows))

    def test_malformed_annotation_aborts_load(self):
        rows = [list(ROWS[0]), list(ROWS[1])]
        rows[1][2] = "broken annotation"
        with pytest.raises(SchemaError, match="Line 3"):
            parse_expression_data(_make_tsv(rows))

    def test_unknown_sample_column_aborts_load(self):
        header = HEADER[:-1] + ["Q0.3"]
        with pytest.raises(SchemaError, match="Q0.3"):
            parse_expression_data(_make_tsv(header=header))

    def test_padded_rate_aborts_load(self):
        header = HEADER[:-1] + ["U0.30"]
        with pytest.raises(SchemaError, match="U0.30"):
            parse_expression_data(_make_tsv(header=header))

    def test_absent_bookkeeping_columns_are_ignored(self):
        header = ["NAME", "G0.05", "G0.1"]
        rows = [["A || b || c || Y1 || 1", "0.1", "0.2"]]
        long_df = parse_expression_data(_make_tsv(rows, header))
        assert len(long_df) == 2
