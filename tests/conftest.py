"""
Shared fixtures: a synthetic 24-well plate with clearly separated treated and control wells.
"""

import numpy as np
import pandas as pd
import pytest
import matplotlib
matplotlib.use("Agg")  # Non-interactive backend for testing


CLASSES = ["inter", "ana", "meta", "prometa", "apo"]

CONTROL_MEANS = [800, 20, 30, 20, 10]
TARGET_MEANS = [400, 20, 30, 300, 100]

CONTROL_CYCLE = ["negative", "scrambled", "empty"]


def make_plate(n_rows: int = 2, n_cols: int = 12, plate: int = 1, seed: int = 0):
    """Build (plate layout, count matrix) for a synthetic plate.

    Even-indexed wells are targets, odd-indexed wells cycle through the
    control groups. Every count is at least 1.
    """
    rng = np.random.default_rng(seed)
    layout_rows = []
    counts = {}

    for i in range(n_rows * n_cols):
        row = "ABCDEFGHIJKLMNOP"[i // n_cols]
        col = i % n_cols + 1
        is_target = i % 2 == 0

        layout_rows.append(
            {
                "Position": f"{row}{col:02d}_{plate:02d}",
                "Group": "target" if is_target else CONTROL_CYCLE[(i // 2) % 3],
                "Gene Symbol": f"GENE{i}" if is_target else None,
            }
        )
        means = TARGET_MEANS if is_target else CONTROL_MEANS
        counts[f"W{row}{col:02d}_P{plate}"] = rng.poisson(means) + 1

    layout = pd.DataFrame(layout_rows)
    matrix = pd.DataFrame(counts, index=CLASSES)
    return layout, matrix


@pytest.fixture
def plate():
    """(plate layout, count matrix) for the synthetic plate."""
    return make_plate()


@pytest.fixture
def plate_layout(plate):
    return plate[0]


@pytest.fixture
def count_matrix(plate):
    return plate[1]


@pytest.fixture
def annotation(plate_layout):
    """Validated annotation table."""
    from phenocount.data.annotation import validate_annotation
    return validate_annotation(plate_layout)


@pytest.fixture
def plate_files(tmp_path, plate_layout, count_matrix):
    """Plate layout (CSV) and count matrix (CSV) written to disk."""
    annotation_path = tmp_path / "plate_layout.csv"
    counts_path = tmp_path / "class_counts.csv"
    plate_layout.to_csv(annotation_path, index=False)
    count_matrix.to_csv(counts_path)
    return annotation_path, counts_path
