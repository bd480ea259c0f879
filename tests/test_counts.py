"""
Tests for count matrix loading and validation.
"""

import numpy as np
import pandas as pd
import pytest

from phenocount.data.counts import (
    count_matrix_from_cells,
    load_count_matrix,
    validate_count_matrix,
)
from phenocount.exceptions import MissingInputError, PivotAmbiguityError


class TestValidateCountMatrix:
    """Tests for validate_count_matrix."""

    def test_valid(self, count_matrix):
        validated = validate_count_matrix(count_matrix)

        assert validated.shape == count_matrix.shape
        assert all(dtype == np.int64 for dtype in validated.dtypes)

    def test_does_not_mutate(self, count_matrix):
        before = count_matrix.copy()
        validate_count_matrix(count_matrix.astype(float))
        pd.testing.assert_frame_equal(count_matrix, before)

    def test_integral_floats_accepted(self):
        matrix = pd.DataFrame({"WA01_P1": [1.0, 2.0]}, index=["inter", "ana"])
        assert validate_count_matrix(matrix)["WA01_P1"].tolist() == [1, 2]

    def test_empty(self):
        with pytest.raises(ValueError, match="empty"):
            validate_count_matrix(pd.DataFrame())

    def test_negative(self):
        matrix = pd.DataFrame({"WA01_P1": [1, -2]}, index=["inter", "ana"])
        with pytest.raises(ValueError, match="negative"):
            validate_count_matrix(matrix)

    def test_missing_values(self):
        matrix = pd.DataFrame({"WA01_P1": [1, np.nan]}, index=["inter", "ana"])
        with pytest.raises(ValueError, match="missing"):
            validate_count_matrix(matrix)

    def test_fractional(self):
        matrix = pd.DataFrame({"WA01_P1": [1.5, 2]}, index=["inter", "ana"])
        with pytest.raises(ValueError, match="non-integer"):
            validate_count_matrix(matrix)

    def test_non_numeric(self):
        matrix = pd.DataFrame({"WA01_P1": ["many", "2"]}, index=["inter", "ana"])
        with pytest.raises(ValueError, match="non-numeric"):
            validate_count_matrix(matrix)

    def test_duplicate_class(self):
        matrix = pd.DataFrame({"WA01_P1": [1, 2]}, index=["inter", "inter"])
        with pytest.raises(PivotAmbiguityError):
            validate_count_matrix(matrix)


class TestLoadCountMatrix:
    """Tests for load_count_matrix."""

    def test_csv(self, tmp_path, count_matrix):
        path = tmp_path / "counts.csv"
        count_matrix.to_csv(path)

        loaded = load_count_matrix(path)
        pd.testing.assert_frame_equal(loaded, validate_count_matrix(count_matrix))

    def test_tsv(self, tmp_path, count_matrix):
        path = tmp_path / "counts.tsv"
        count_matrix.to_csv(path, sep="\t")

        assert load_count_matrix(path).shape == count_matrix.shape

    def test_pickle(self, tmp_path, count_matrix):
        path = tmp_path / "counts.pkl"
        count_matrix.to_pickle(path)

        assert load_count_matrix(path).shape == count_matrix.shape

    def test_missing(self, tmp_path):
        with pytest.raises(MissingInputError):
            load_count_matrix(tmp_path / "counts.csv")

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "counts.h5"
        path.write_text("")
        with pytest.raises(MissingInputError, match="unsupported"):
            load_count_matrix(path)


class TestCountMatrixFromCells:
    """Tests for building a count matrix from per-cell classifications."""

    def test_counts(self):
        cells = pd.DataFrame(
            {
                "class": ["inter", "inter", "ana", "inter", "apo"],
                "well": ["WA01_P1", "WA01_P1", "WA01_P1", "WA02_P1", "WA02_P1"],
                "time": [0, 1, 1, 0, 1],
            }
        )
        matrix = count_matrix_from_cells(cells, time_column="time")

        assert matrix.loc["inter", "WA01_P1"] == 2
        assert matrix.loc["ana", "WA02_P1"] == 0
        assert int(matrix.to_numpy().sum()) == 5

    def test_missing_column(self):
        with pytest.raises(ValueError, match="missing column"):
            count_matrix_from_cells(pd.DataFrame({"class": ["inter"]}))
