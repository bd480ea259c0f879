"""
Tests for PCA, kNN classification and plotting.
"""

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import pytest

from phenocount.analysis.classification import (
    CLASS_ORDER,
    ClassificationResult,
    KSelectionResult,
    make_binary_labels,
    select_k,
    train_knn_classifier,
)
from phenocount.analysis.pca import PCAResult, run_pca
from phenocount.analysis.visualisation import (
    PlotConfig,
    plot_class_composition,
    plot_confusion_matrix,
    plot_k_selection,
    plot_loadings,
    plot_pca_scores,
    plot_scree,
    save_figure,
)
from phenocount.processing.features import build_feature_matrix
from phenocount.processing.join import join_annotation
from phenocount.processing.normalisation import normalise_counts
from phenocount.processing.reshape import counts_to_long


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def processed(count_matrix, annotation):
    joined = join_annotation(counts_to_long(count_matrix), annotation).table
    return normalise_counts(joined).table


@pytest.fixture
def features(processed):
    return build_feature_matrix(processed)


@pytest.fixture
def pca_result(features):
    return run_pca(features)


@pytest.fixture
def classification(features):
    return train_knn_classifier(features, k=3, random_state=0)


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")


# =============================================================================
# Tests for PCA
# =============================================================================

class TestPCA:
    """Tests for run_pca and PCAResult."""

    def test_basic(self, pca_result, features):
        assert isinstance(pca_result, PCAResult)
        assert pca_result.n_components == len(features.feature_columns)
        assert list(pca_result.scores.index) == features.wells
        assert list(pca_result.loadings.index) == features.feature_columns

    def test_variance(self, pca_result):
        ratios = pca_result.explained_variance_ratio

        assert np.all(np.diff(ratios) <= 1e-12)
        assert pca_result.cumulative_variance[-1] == pytest.approx(1.0)

    def test_n_components(self, features):
        result = run_pca(features, n_components=2)
        assert list(result.scores.columns) == ["PC1", "PC2"]

    def test_labels_kept(self, pca_result, features):
        pd.testing.assert_series_equal(pca_result.labels, features.labels)

    def test_top_loadings(self, pca_result):
        top = pca_result.top_loadings(1, n=3)

        assert list(top.columns) == ["feature", "loading", "abs_loading"]
        assert len(top) == 3
        assert top["abs_loading"].is_monotonic_decreasing
        assert top.equals(pca_result.top_loadings("PC1", n=3))

    def test_separates_groups(self, pca_result, features):
        """Treated and control wells fall on opposite sides of PC1."""
        binary = make_binary_labels(features.labels)
        pc1 = pca_result.scores["PC1"]

        control_mean = pc1[binary == "control"].mean()
        treated_mean = pc1[binary == "treated"].mean()
        assert np.sign(control_mean) != np.sign(treated_mean)

    def test_invalid_component(self, pca_result):
        with pytest.raises(IndexError):
            pca_result.top_loadings(pca_result.n_components + 1)
        with pytest.raises(KeyError):
            pca_result.top_loadings("PC99")

    def test_transform(self, pca_result, features):
        projected = pca_result.transform(features.X)
        np.testing.assert_allclose(projected, pca_result.scores.to_numpy(), atol=1e-6)

    def test_dataframe_input(self, features):
        result = run_pca(features.matrix, standardise=False)
        assert result.scaler is None
        assert result.n_components == len(features.feature_columns)

    def test_summary_and_dict(self, pca_result):
        assert "PC1" in pca_result.summary()
        payload = pca_result.to_dict()
        assert payload["standardised"] is True
        assert len(payload["explained_variance_ratio"]) == pca_result.n_components
        assert "top_loadings" not in payload

    def test_dict_top_loadings(self, pca_result):
        top = pca_result.to_dict(n_loadings=2)["top_loadings"]

        assert list(top) == list(pca_result.scores.columns)
        assert [row["feature"] for row in top["PC1"]] == pca_result.top_loadings(1, n=2)["feature"].tolist()


# =============================================================================
# Tests for classification
# =============================================================================

class TestBinaryLabels:
    """Tests for make_binary_labels."""

    def test_default_controls(self):
        labels = make_binary_labels(["negative", "scrambled", "empty", "target"])
        assert labels.tolist() == ["control", "control", "control", "treated"]

    def test_custom_controls(self):
        labels = make_binary_labels(["negative", "empty", "target"], control_groups=["negative"])
        assert labels.tolist() == ["control", "treated", "treated"]


class TestTrainKNN:
    """Tests for train_knn_classifier."""

    def test_result(self, classification, features):
        assert isinstance(classification, ClassificationResult)
        assert classification.k == 3
        assert len(classification.train_wells) + len(classification.test_wells) == len(features)
        assert not set(classification.train_wells) & set(classification.test_wells)

    def test_low_error_on_separable_plate(self, classification):
        assert classification.misclassification_rate <= 0.25
        assert classification.accuracy == pytest.approx(1 - classification.misclassification_rate)

    def test_confusion_matrix(self, classification):
        cm = classification.confusion_matrix

        assert list(cm.index) == CLASS_ORDER
        assert list(cm.columns) == CLASS_ORDER
        assert cm.to_numpy().sum() == len(classification.test_wells)

    def test_error_rate_matches_confusion(self, classification):
        cm = classification.confusion_matrix.to_numpy()
        expected = 1 - np.trace(cm) / cm.sum()
        assert classification.misclassification_rate == pytest.approx(expected)

    def test_stratified_split(self, classification):
        actual = classification.predictions["actual"]
        assert set(actual) == set(CLASS_ORDER)

    def test_reproducible(self, features):
        first = train_knn_classifier(features, random_state=7)
        second = train_knn_classifier(features, random_state=7)
        assert first.test_wells == second.test_wells

    def test_predict(self, classification, features):
        predictions = classification.predict(features.matrix)
        assert len(predictions) == len(features)
        assert set(predictions) <= set(CLASS_ORDER)

    def test_standardised(self, features):
        result = train_knn_classifier(features, standardise=True)
        assert "scaler" in result.classifier.named_steps

    def test_invalid_k(self, features):
        with pytest.raises(ValueError):
            train_knn_classifier(features, k=0)
        with pytest.raises(ValueError, match="exceeds"):
            train_knn_classifier(features, k=100)

    def test_invalid_fraction(self, features):
        with pytest.raises(ValueError):
            train_knn_classifier(features, test_fraction=1.5)

    def test_single_label(self, features):
        controls_only = features.matrix[features.matrix["group"] != "target"]
        with pytest.raises(ValueError, match="both control and treated"):
            train_knn_classifier(controls_only, feature_columns=features.feature_columns)

    def test_summary(self, classification):
        summary = classification.summary()
        assert "k=3" in summary
        assert "Misclassification rate" in summary
        assert classification.to_dict()["n_test"] == len(classification.test_wells)


class TestSelectK:
    """Tests for select_k."""

    def test_select(self, features):
        result = select_k(features, k_values=[1, 3, 5])

        assert isinstance(result, KSelectionResult)
        assert result.best_k in (1, 3, 5)
        assert list(result.scores["k"]) == [1, 3, 5]
        assert result.scores["mean_accuracy"].between(0, 1).all()

    def test_large_k_skipped(self, features):
        result = select_k(features, k_values=[1, 100])
        assert list(result.scores["k"]) == [1]

    def test_no_valid_k(self, features):
        with pytest.raises(ValueError):
            select_k(features, k_values=[100])

    def test_summary(self, features):
        assert "best k" in select_k(features, k_values=[1, 3]).summary()


# =============================================================================
# Tests for visualisation
# =============================================================================

class TestVisualisation:
    """Smoke tests for the plotting functions."""

    def test_pca_scores(self, pca_result):
        fig, ax = plot_pca_scores(pca_result, annotate=True)
        assert ax.get_xlabel().startswith("PC1")
        assert ax.get_legend() is not None

    def test_pca_scores_other_components(self, pca_result):
        _, ax = plot_pca_scores(pca_result, components=(2, 3), title=None)
        assert ax.get_ylabel().startswith("PC3")

    def test_scree(self, pca_result):
        _, ax = plot_scree(pca_result)
        assert len(ax.patches) == pca_result.n_components

    def test_loadings(self, pca_result):
        _, ax = plot_loadings(pca_result, component=2, n_features=3)
        assert len(ax.patches) == 3
        assert ax.get_title() == "Loadings on PC2"

    def test_confusion_matrix(self, classification):
        _, ax = plot_confusion_matrix(classification, normalise=True)
        assert ax.get_xlabel() == "Predicted"

    def test_k_selection(self, features):
        _, ax = plot_k_selection(select_k(features, k_values=[1, 3, 5]))
        assert ax.get_xlabel() == "k (neighbours)"

    def test_class_composition(self, processed):
        wells = sorted(processed["well"].unique())[:6]
        _, ax = plot_class_composition(processed, wells=wells)
        assert len(ax.get_xticklabels()) == 6

    def test_existing_axes(self, pca_result):
        fig, ax = plt.subplots()
        returned_fig, returned_ax = plot_scree(pca_result, ax=ax)
        assert returned_ax is ax
        assert returned_fig is fig

    def test_custom_config(self, pca_result):
        fig, _ = plot_scree(pca_result, config=PlotConfig(figsize=(4, 3)))
        assert tuple(fig.get_size_inches()) == pytest.approx((4, 3))

    def test_save_figure(self, tmp_path, pca_result):
        fig, _ = plot_scree(pca_result)
        path = save_figure(fig, tmp_path / "figures" / "scree.png")

        assert path.exists()
        assert path.stat().st_size > 0
