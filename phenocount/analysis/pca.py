"""
Principal component analysis of per-well feature matrices.

A thin layer over scikit-learn's PCA that keeps well and class labels on the
scores and loadings so they can be reported and plotted directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import numpy as np
import pandas as pd
from sklearn.decomposition import PCA
from sklearn.preprocessing import StandardScaler

from phenocount.data import columns as C
from phenocount.processing.features import FeatureMatrixResult
from phenocount.utils.logging import logger


# =============================================================================
# PCA Result
# =============================================================================

@dataclass
class PCAResult:
    """Container for PCA results."""

    # Shape: (n_wells, n_components), columns PC1..PCn
    scores: pd.DataFrame

    # Shape: (n_features, n_components)
    loadings: pd.DataFrame

    explained_variance_ratio: np.ndarray

    model: PCA
    scaler: Optional[StandardScaler] = None

    # Group label of each well, aligned with scores
    labels: Optional[pd.Series] = None

    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def n_components(self) -> int:
        return self.scores.shape[1]

    @property
    def cumulative_variance(self) -> np.ndarray:
        return np.cumsum(self.explained_variance_ratio)

    def component_name(self, component: Union[int, str]) -> str:
        """Accept 1-based component numbers or names like ``"PC2"``."""
        if isinstance(component, str):
            if component not in self.loadings.columns:
                raise KeyError(f"Unknown component: {component}")
            return component
        if not 1 <= component <= self.n_components:
            raise IndexError(f"Component must be between 1 and {self.n_components}, got {component}")
        return f"PC{component}"

    def top_loadings(self, component: Union[int, str] = 1, n: int = 5) -> pd.DataFrame:
        """
        Features with the largest absolute loading on a component.

        Args:
            component: 1-based component number or name
            n: Number of features to return

        Returns:
            DataFrame with ``feature``, ``loading`` and ``abs_loading`` columns
        """
        name = self.component_name(component)
        column = self.loadings[name]
        order = column.abs().sort_values(ascending=False).index[:n]
        return pd.DataFrame(
            {
                "feature": list(order),
                "loading": column.loc[order].to_numpy(),
                "abs_loading": column.loc[order].abs().to_numpy(),
            }
        )

    def transform(self, X: Union[np.ndarray, pd.DataFrame]) -> np.ndarray:
        """Project new wells onto the fitted components."""
        X = np.asarray(X, dtype=float)
        if self.scaler is not None:
            X = self.scaler.transform(X)
        return self.model.transform(X)

    def summary(self, n_loadings: int = 3) -> str:
        """Get summary string."""
        lines = [
            f"PCA Result ({self.n_components} components, {len(self.scores)} wells)",
        ]
        for i, (ratio, cumulative) in enumerate(
            zip(self.explained_variance_ratio, self.cumulative_variance), start=1
        ):
            top = self.top_loadings(i, n=n_loadings)
            drivers = ", ".join(f"{f} ({l:+.2f})" for f, l in zip(top["feature"], top["loading"]))
            lines.append(f"  PC{i}: {ratio:.1%} (cumulative {cumulative:.1%}) - {drivers}")
        return "\n".join(lines)

    def to_dict(self, n_loadings: Optional[int] = None) -> Dict[str, Any]:
        """
        Convert to dictionary.

        Args:
            n_loadings: Also list the top loadings of every component
        """
        result = {
            "n_components": self.n_components,
            "explained_variance_ratio": self.explained_variance_ratio.tolist(),
            "loadings": {
                feature: row.tolist() for feature, row in self.loadings.iterrows()
            },
            "standardised": self.scaler is not None,
        }
        if n_loadings:
            result["top_loadings"] = {
                name: self.top_loadings(name, n=n_loadings).to_dict(orient="records")
                for name in self.scores.columns
            }
        return result


# =============================================================================
# PCA
# =============================================================================

def run_pca(
    features: Union[FeatureMatrixResult, pd.DataFrame],
    n_components: Optional[int] = None,
    standardise: bool = True,
    feature_columns: Optional[List[str]] = None,
    random_state: int = 42,
) -> PCAResult:
    """
    Fit PCA to a feature matrix.

    Args:
        features: FeatureMatrixResult, or a DataFrame with wells as rows
        n_components: Components to keep (default: min(n_wells, n_features))
        standardise: Scale features to unit variance before fitting
        feature_columns: Numeric columns to use when ``features`` is a DataFrame
            (default: every numeric column)
        random_state: Random seed for the randomised solver

    Returns:
        PCAResult

    Raises:
        ValueError: Propagated from scikit-learn, e.g. for non-finite values

    Example:
        >>> result = run_pca(feature_matrix, n_components=3)
        >>> print(result.summary())
    """
    if isinstance(features, FeatureMatrixResult):
        frame = features.matrix
        columns = features.feature_columns
    else:
        frame = features
        columns = feature_columns or frame.select_dtypes(include=[np.number]).columns.tolist()

    X = frame[columns].to_numpy(dtype=float)

    scaler = None
    if standardise:
        scaler = StandardScaler()
        X = scaler.fit_transform(X)

    model = PCA(n_components=n_components, random_state=random_state)
    scores = model.fit_transform(X)

    component_names = [f"PC{i + 1}" for i in range(model.n_components_)]
    labels = frame[C.GROUP] if C.GROUP in frame.columns else None

    result = PCAResult(
        scores=pd.DataFrame(scores, index=frame.index, columns=component_names),
        loadings=pd.DataFrame(model.components_.T, index=columns, columns=component_names),
        explained_variance_ratio=model.explained_variance_ratio_,
        model=model,
        scaler=scaler,
        labels=labels,
    )

    logger.info(
        f"Fitted PCA with {model.n_components_} components; "
        f"PC1 explains {model.explained_variance_ratio_[0]:.1%} of variance"
    )
    return result
