"""
Visualisation utilities for PhenoCount.

Plots for the exploratory PCA, the knn evaluation and the per-well class
composition. Every function returns ``(Figure, Axes)`` and leaves saving to
``save_figure``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from matplotlib.figure import Figure
from matplotlib.axes import Axes
import seaborn as sns

from phenocount.analysis.classification import ClassificationResult, KSelectionResult
from phenocount.analysis.pca import PCAResult
from phenocount.data import columns as C
from phenocount.utils.logging import logger


# =============================================================================
# Plot Configuration
# =============================================================================

@dataclass
class PlotConfig:
    """Configuration for plots."""

    # Figure size
    figsize: Tuple[float, float] = (8, 6)
    dpi: int = 100

    # Style
    style: str = "whitegrid"
    context: str = "notebook"
    palette: str = "Set2"

    # Font sizes
    title_size: int = 14
    label_size: int = 12
    tick_size: int = 10
    legend_size: int = 10

    # Colors
    cmap: str = "Blues"
    diverging_cmap: str = "RdBu_r"

    def apply(self) -> None:
        """Apply configuration to matplotlib/seaborn."""
        sns.set_style(self.style)
        sns.set_context(self.context)
        plt.rcParams["figure.figsize"] = self.figsize
        plt.rcParams["figure.dpi"] = self.dpi
        plt.rcParams["axes.titlesize"] = self.title_size
        plt.rcParams["axes.labelsize"] = self.label_size
        plt.rcParams["xtick.labelsize"] = self.tick_size
        plt.rcParams["ytick.labelsize"] = self.tick_size
        plt.rcParams["legend.fontsize"] = self.legend_size


DEFAULT_CONFIG = PlotConfig()


def _setup_plot(config: Optional[PlotConfig] = None) -> PlotConfig:
    config = config or DEFAULT_CONFIG
    config.apply()
    return config


def _get_axes(ax: Optional[Axes], config: PlotConfig, figsize=None) -> Tuple[Figure, Axes]:
    if ax is None:
        fig, ax = plt.subplots(figsize=figsize or config.figsize)
    else:
        fig = ax.figure
    return fig, ax


# =============================================================================
# PCA
# =============================================================================

def plot_pca_scores(
    result: PCAResult,
    components: Tuple[int, int] = (1, 2),
    labels: Optional[pd.Series] = None,
    annotate: bool = False,
    title: Optional[str] = "PCA of phenotype-class z-scores",
    ax: Optional[Axes] = None,
    config: Optional[PlotConfig] = None,
) -> Tuple[Figure, Axes]:
    """
    Scatter plot of well scores on two principal components.

    Args:
        result: PCA result
        components: 1-based component numbers for the x and y axes
        labels: Colour groups (default: the groups stored on the result)
        annotate: Write the well name next to each point
        title: Plot title
        ax: Existing axes to plot on
        config: Plot configuration

    Returns:
        Tuple of (Figure, Axes)
    """
    config = _setup_plot(config)
    fig, ax = _get_axes(ax, config)

    x_name = result.component_name(components[0])
    y_name = result.component_name(components[1])
    coords = result.scores[[x_name, y_name]]
    labels = labels if labels is not None else result.labels

    if labels is not None:
        labels = pd.Series(labels, index=coords.index) if not isinstance(labels, pd.Series) else labels
        unique_labels = sorted(pd.unique(labels.astype(str)))
        colors = sns.color_palette(config.palette, n_colors=len(unique_labels))
        for color, label in zip(colors, unique_labels):
            mask = (labels.astype(str) == label).to_numpy()
            ax.scatter(
                coords.loc[mask, x_name],
                coords.loc[mask, y_name],
                color=color,
                label=label,
                alpha=0.8,
                s=40,
            )
        ax.legend(bbox_to_anchor=(1.05, 1), loc="upper left", title="Group")
    else:
        ax.scatter(coords[x_name], coords[y_name], alpha=0.8, s=40)

    if annotate:
        for well, (x, y) in coords.iterrows():
            ax.annotate(str(well), (x, y), fontsize=7, alpha=0.7)

    ratios = result.explained_variance_ratio
    ax.set_xlabel(f"{x_name} ({ratios[components[0] - 1]:.1%})")
    ax.set_ylabel(f"{y_name} ({ratios[components[1] - 1]:.1%})")
    ax.axhline(0, color="grey", linewidth=0.5)
    ax.axvline(0, color="grey", linewidth=0.5)

    if title:
        ax.set_title(title)

    plt.tight_layout()
    return fig, ax


def plot_scree(
    result: PCAResult,
    title: Optional[str] = "Variance explained",
    ax: Optional[Axes] = None,
    config: Optional[PlotConfig] = None,
) -> Tuple[Figure, Axes]:
    """Bar chart of per-component and line of cumulative explained variance."""
    config = _setup_plot(config)
    fig, ax = _get_axes(ax, config)

    positions = np.arange(1, result.n_components + 1)
    ax.bar(positions, result.explained_variance_ratio, color=sns.color_palette(config.palette)[0])
    ax.plot(positions, result.cumulative_variance, marker="o", color="black", label="Cumulative")

    ax.set_xticks(positions)
    ax.set_xticklabels([f"PC{i}" for i in positions])
    ax.set_ylabel("Fraction of variance")
    ax.set_ylim(0, 1.05)
    ax.legend()

    if title:
        ax.set_title(title)

    plt.tight_layout()
    return fig, ax


def plot_loadings(
    result: PCAResult,
    component: Union[int, str] = 1,
    n_features: Optional[int] = None,
    title: Optional[str] = None,
    ax: Optional[Axes] = None,
    config: Optional[PlotConfig] = None,
) -> Tuple[Figure, Axes]:
    """
    Horizontal bar chart of feature loadings on one component.

    Args:
        result: PCA result
        component: 1-based component number or name
        n_features: Show only the features with the largest absolute loading
        title: Plot title (default: "Loadings on PCn")
        ax: Existing axes to plot on
        config: Plot configuration

    Returns:
        Tuple of (Figure, Axes)
    """
    config = _setup_plot(config)
    fig, ax = _get_axes(ax, config)

    name = result.component_name(component)
    n = n_features or len(result.loadings)
    top = result.top_loadings(name, n=n).iloc[::-1]

    colors = [
        sns.color_palette(config.diverging_cmap, 2)[int(value > 0)]
        for value in top["loading"]
    ]
    ax.barh(top["feature"], top["loading"], color=colors)
    ax.axvline(0, color="black", linewidth=0.8)
    ax.set_xlabel("Loading")

    ax.set_title(title or f"Loadings on {name}")

    plt.tight_layout()
    return fig, ax


# =============================================================================
# Classification
# =============================================================================

def plot_confusion_matrix(
    result: ClassificationResult,
    normalise: bool = False,
    title: Optional[str] = None,
    ax: Optional[Axes] = None,
    config: Optional[PlotConfig] = None,
) -> Tuple[Figure, Axes]:
    """
    Heatmap of the held-out confusion matrix.

    Args:
        result: Classification result
        normalise: Show row fractions instead of counts
        title: Plot title
        ax: Existing axes to plot on
        config: Plot configuration

    Returns:
        Tuple of (Figure, Axes)
    """
    config = _setup_plot(config)
    fig, ax = _get_axes(ax, config, figsize=(5, 4))

    matrix = result.confusion_matrix
    if normalise:
        row_sums = matrix.sum(axis=1).replace(0, np.nan)
        matrix = matrix.div(row_sums, axis=0).fillna(0.0)

    sns.heatmap(
        matrix,
        ax=ax,
        annot=True,
        fmt=".2f" if normalise else "d",
        cmap=config.cmap,
        cbar=False,
    )
    ax.set_xlabel("Predicted")
    ax.set_ylabel("Actual")
    ax.set_title(
        title or f"kNN (k={result.k}), error rate {result.misclassification_rate:.2f}"
    )

    plt.tight_layout()
    return fig, ax


def plot_k_selection(
    result: KSelectionResult,
    title: Optional[str] = "Cross-validated accuracy by k",
    ax: Optional[Axes] = None,
    config: Optional[PlotConfig] = None,
) -> Tuple[Figure, Axes]:
    """Mean +/- std cross-validated accuracy for each candidate k."""
    config = _setup_plot(config)
    fig, ax = _get_axes(ax, config)

    scores = result.scores
    ax.errorbar(
        scores["k"],
        scores["mean_accuracy"],
        yerr=scores["std_accuracy"],
        marker="o",
        capsize=4,
    )
    ax.axvline(result.best_k, color="grey", linestyle="--", label=f"best k = {result.best_k}")
    ax.set_xlabel("k (neighbours)")
    ax.set_ylabel("Accuracy")
    ax.set_xticks(scores["k"].tolist())
    ax.legend()

    if title:
        ax.set_title(title)

    plt.tight_layout()
    return fig, ax


# =============================================================================
# Class Composition
# =============================================================================

def plot_class_composition(
    processed: pd.DataFrame,
    wells: Optional[List[str]] = None,
    title: Optional[str] = "Phenotype-class composition per well",
    ax: Optional[Axes] = None,
    config: Optional[PlotConfig] = None,
) -> Tuple[Figure, Axes]:
    """
    Stacked bar chart of class percentages for each well, sorted by group.

    Args:
        processed: Processed long table with ``percentage`` and ``group``
        wells: Restrict to these wells
        title: Plot title
        ax: Existing axes to plot on
        config: Plot configuration

    Returns:
        Tuple of (Figure, Axes)
    """
    config = _setup_plot(config)

    table = processed
    if wells is not None:
        table = table[table[C.WELL].isin(wells)]

    composition = table.pivot(index=C.WELL, columns=C.PHENOTYPE_CLASS, values=C.PERCENTAGE)
    if C.GROUP in table.columns:
        order = (
            table.drop_duplicates(C.WELL)
            .sort_values([C.GROUP, C.WELL])[C.WELL]
            .tolist()
        )
        composition = composition.loc[order]

    width = max(config.figsize[0], 0.25 * len(composition))
    fig, ax = _get_axes(ax, config, figsize=(width, config.figsize[1]))

    composition.plot(
        kind="bar",
        stacked=True,
        ax=ax,
        width=0.9,
        color=sns.color_palette(config.palette, n_colors=composition.shape[1]),
    )
    ax.set_ylabel("Fraction of cells")
    ax.set_xlabel("Well")
    ax.set_ylim(0, 1)
    ax.legend(bbox_to_anchor=(1.02, 1), loc="upper left", title="Class")

    if title:
        ax.set_title(title)

    plt.tight_layout()
    return fig, ax


# =============================================================================
# Saving
# =============================================================================

def save_figure(
    fig: Figure,
    path: Union[str, Path],
    dpi: int = 150,
    transparent: bool = False,
    bbox_inches: str = "tight",
    close: bool = True,
) -> Path:
    """
    Save figure to file.

    Args:
        fig: Figure to save
        path: Output path
        dpi: Resolution
        transparent: Transparent background
        bbox_inches: Bounding box setting
        close: Close the figure after saving

    Returns:
        The output path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fig.savefig(
        path,
        dpi=dpi,
        transparent=transparent,
        bbox_inches=bbox_inches,
    )
    if close:
        plt.close(fig)

    logger.info(f"Saved figure to {path}")
    return path
