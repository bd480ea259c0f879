"""
Tests for per-well percentages and the logit transform.
"""

import math

import numpy as np
import pandas as pd
import pytest

from phenocount.exceptions import DegenerateTransformError, EmptyWellError
from phenocount.processing.join import join_annotation
from phenocount.processing.normalisation import (
    TransformResult,
    compute_percentages,
    compute_z_scores,
    logit,
    normalise_counts,
    well_totals,
)
from phenocount.processing.reshape import counts_to_long


# =============================================================================
# Fixtures
# =============================================================================

def _long(matrix: pd.DataFrame) -> pd.DataFrame:
    return counts_to_long(matrix)


@pytest.fixture
def two_class_well():
    """Counts {ana: 10, inter: 90} in a single well."""
    return _long(pd.DataFrame({"WA01_P1": [10, 90]}, index=["ana", "inter"]))


@pytest.fixture
def one_class_well():
    """All cells of WA02_P1 are in a single class."""
    return _long(
        pd.DataFrame(
            {"WA01_P1": [10, 90, 5], "WA02_P1": [0, 50, 0]},
            index=["ana", "inter", "apo"],
        )
    )


@pytest.fixture
def empty_well():
    return _long(pd.DataFrame({"WA01_P1": [10, 90], "WA02_P1": [0, 0]}, index=["ana", "inter"]))


# =============================================================================
# Tests for logit
# =============================================================================

class TestLogit:
    """Tests for the logit function."""

    def test_scalar(self):
        assert logit(0.1) == pytest.approx(math.log(0.1 / 0.9))
        assert logit(0.5) == pytest.approx(0.0)

    def test_array(self):
        values = logit(np.array([0.1, 0.9]))
        np.testing.assert_allclose(values, [-2.1972245773, 2.1972245773], rtol=1e-9)

    def test_boundaries_infinite(self):
        assert logit(0.0) == -np.inf
        assert logit(1.0) == np.inf


# =============================================================================
# Tests for percentages
# =============================================================================

class TestPercentages:
    """Tests for well totals and percentages."""

    def test_totals(self, two_class_well):
        totals = well_totals(two_class_well)
        assert totals.set_index("well")["total"].to_dict() == {"A01_01": 100}

    def test_example_percentages(self, two_class_well):
        table, empty = compute_percentages(two_class_well)

        pct = table.set_index("phenotype_class")["percentage"]
        assert pct["ana"] == pytest.approx(0.1)
        assert pct["inter"] == pytest.approx(0.9)
        assert empty == []

    def test_sum_to_one(self, count_matrix):
        table, _ = compute_percentages(counts_to_long(count_matrix))
        sums = table.groupby("well")["percentage"].sum()
        np.testing.assert_allclose(sums.to_numpy(), 1.0)

    def test_empty_well_dropped(self, empty_well):
        table, empty = compute_percentages(empty_well, on_empty_well="drop")

        assert empty == ["A02_01"]
        assert set(table["well"]) == {"A01_01"}
        assert not table["percentage"].isna().any()

    def test_empty_well_raises(self, empty_well):
        with pytest.raises(EmptyWellError) as exc_info:
            compute_percentages(empty_well, on_empty_well="raise")
        assert exc_info.value.wells == ["A02_01"]

    def test_unknown_policy(self, two_class_well):
        with pytest.raises(ValueError):
            compute_percentages(two_class_well, on_empty_well="ignore")


# =============================================================================
# Tests for z-scores
# =============================================================================

class TestZScores:
    """Tests for the logit z-score transform."""

    def test_example_z_scores(self, two_class_well):
        result = normalise_counts(two_class_well)
        z = result.table.set_index("phenotype_class")["z_score"]

        assert z["ana"] == pytest.approx(-2.1972, abs=1e-4)
        assert z["inter"] == pytest.approx(2.1972, abs=1e-4)
        assert not result.table["degenerate"].any()

    def test_degenerate_flagged_and_clipped(self, one_class_well):
        result = normalise_counts(one_class_well, degenerate_policy="clip", clip_epsilon=1e-3)

        assert isinstance(result, TransformResult)
        assert set(result.degenerate_rows) == {
            ("A02_01", "ana"),
            ("A02_01", "inter"),
            ("A02_01", "apo"),
        }
        assert np.isfinite(result.table["z_score"]).all()
        assert result.table["degenerate"].sum() == 3

        a02 = result.table[result.table["well"] == "A02_01"].set_index("phenotype_class")
        assert a02.loc["inter", "z_score"] == pytest.approx(logit(1 - 1e-3))
        assert a02.loc["ana", "z_score"] == pytest.approx(logit(1e-3))

    def test_degenerate_flag_keeps_infinite(self, one_class_well):
        result = normalise_counts(one_class_well, degenerate_policy="flag")
        a02 = result.table[result.table["well"] == "A02_01"].set_index("phenotype_class")

        assert a02.loc["inter", "z_score"] == np.inf
        assert a02.loc["ana", "z_score"] == -np.inf
        assert a02["degenerate"].all()
        assert len(result.diagnostics.degenerate_rows) == 3

    def test_degenerate_raise(self, one_class_well):
        with pytest.raises(DegenerateTransformError) as exc_info:
            normalise_counts(one_class_well, degenerate_policy="raise")
        assert ("A02_01", "inter") in exc_info.value.pairs

    def test_non_degenerate_wells_unaffected_by_clip(self, one_class_well):
        result = normalise_counts(one_class_well, degenerate_policy="clip")
        a01 = result.table[result.table["well"] == "A01_01"].set_index("phenotype_class")

        assert a01.loc["inter", "z_score"] == pytest.approx(logit(90 / 105))

    def test_invalid_epsilon(self, two_class_well):
        table, _ = compute_percentages(two_class_well)
        with pytest.raises(ValueError):
            compute_z_scores(table, epsilon=0.7)

    def test_input_not_mutated(self, count_matrix, annotation):
        joined = join_annotation(counts_to_long(count_matrix), annotation).table
        before = joined.copy()
        normalise_counts(joined)
        pd.testing.assert_frame_equal(joined, before)
