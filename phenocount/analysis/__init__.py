"""
Modeling and visualisation for PhenoCount.

This package provides:
- PCA of per-well feature matrices with labelled scores and loadings
- kNN classification of treated versus control wells
- Plots for both, plus per-well class composition
"""

from phenocount.analysis.pca import PCAResult, run_pca
from phenocount.analysis.classification import (
    CONTROL_LABEL,
    TREATED_LABEL,
    ClassificationResult,
    KSelectionResult,
    make_binary_labels,
    select_k,
    train_knn_classifier,
)
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

__all__ = [
    # PCA
    "PCAResult",
    "run_pca",
    # Classification
    "CONTROL_LABEL",
    "TREATED_LABEL",
    "ClassificationResult",
    "KSelectionResult",
    "make_binary_labels",
    "train_knn_classifier",
    "select_k",
    # Visualisation
    "PlotConfig",
    "plot_pca_scores",
    "plot_scree",
    "plot_loadings",
    "plot_confusion_matrix",
    "plot_k_selection",
    "plot_class_composition",
    "save_figure",
]
