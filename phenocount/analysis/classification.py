"""
k-nearest-neighbours classification of treated versus control wells.

Wells from the control groups (negative, scrambled, empty by default) are
labelled ``"control"`` and everything else ``"treated"``. The classifier is
scikit-learn's majority-vote ``KNeighborsClassifier``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd
from sklearn.metrics import accuracy_score, confusion_matrix
from sklearn.model_selection import StratifiedKFold, cross_val_score, train_test_split
from sklearn.neighbors import KNeighborsClassifier
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

from phenocount.data import columns as C
from phenocount.data.annotation import CONTROL_GROUPS, Group
from phenocount.processing.features import FeatureMatrixResult
from phenocount.utils.logging import logger


CONTROL_LABEL = "control"
TREATED_LABEL = "treated"
CLASS_ORDER = [CONTROL_LABEL, TREATED_LABEL]


# =============================================================================
# Results
# =============================================================================

@dataclass
class ClassificationResult:
    """Container for a trained classifier and its held-out evaluation."""

    classifier: Union[KNeighborsClassifier, Pipeline]
    k: int

    # Rows are actual labels, columns are predicted labels
    confusion_matrix: pd.DataFrame
    misclassification_rate: float

    # Held-out wells: actual and predicted labels
    predictions: pd.DataFrame

    train_wells: List[str] = field(default_factory=list)
    test_wells: List[str] = field(default_factory=list)
    feature_columns: List[str] = field(default_factory=list)

    @property
    def accuracy(self) -> float:
        return 1.0 - self.misclassification_rate

    def predict(self, X: Union[np.ndarray, pd.DataFrame]) -> np.ndarray:
        """Predict control/treated labels for new wells."""
        if isinstance(X, pd.DataFrame):
            X = X[self.feature_columns]
        return self.classifier.predict(np.asarray(X, dtype=float))

    def summary(self) -> str:
        """Get summary string."""
        lines = [
            f"kNN Classification (k={self.k})",
            f"  Train wells: {len(self.train_wells)}, test wells: {len(self.test_wells)}",
            f"  Misclassification rate: {self.misclassification_rate:.3f}",
            "  Confusion matrix (rows = actual, columns = predicted):",
        ]
        lines.extend("    " + line for line in self.confusion_matrix.to_string().splitlines())
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "k": self.k,
            "misclassification_rate": self.misclassification_rate,
            "accuracy": self.accuracy,
            "confusion_matrix": self.confusion_matrix.to_dict(),
            "n_train": len(self.train_wells),
            "n_test": len(self.test_wells),
        }


@dataclass
class KSelectionResult:
    """Cross-validated accuracy for each candidate k."""

    # Columns: k, mean_accuracy, std_accuracy
    scores: pd.DataFrame
    best_k: int
    cv_folds: int

    def summary(self) -> str:
        lines = [f"k selection ({self.cv_folds}-fold CV), best k = {self.best_k}"]
        for _, row in self.scores.iterrows():
            lines.append(
                f"  k={int(row['k'])}: {row['mean_accuracy']:.3f} +/- {row['std_accuracy']:.3f}"
            )
        return "\n".join(lines)


# =============================================================================
# Labels and Inputs
# =============================================================================

def make_binary_labels(
    groups: Union[pd.Series, Sequence[str]],
    control_groups: Optional[Sequence[Union[str, Group]]] = None,
) -> pd.Series:
    """
    Map experimental groups to ``"control"`` / ``"treated"``.

    Args:
        groups: Group of each well
        control_groups: Groups counted as control (default: negative, scrambled, empty)

    Returns:
        Series of binary labels aligned with ``groups``
    """
    if control_groups is None:
        control_groups = CONTROL_GROUPS
    controls = {Group.parse(g).value for g in control_groups}

    groups = pd.Series(groups) if not isinstance(groups, pd.Series) else groups
    parsed = groups.map(lambda g: Group.parse(g).value)
    return parsed.map(lambda g: CONTROL_LABEL if g in controls else TREATED_LABEL)


def _prepare_inputs(
    features: Union[FeatureMatrixResult, pd.DataFrame],
    feature_columns: Optional[List[str]],
    control_groups: Optional[Sequence[Union[str, Group]]],
):
    if isinstance(features, FeatureMatrixResult):
        frame = features.matrix
        columns = features.feature_columns
    else:
        frame = features
        columns = feature_columns or frame.select_dtypes(include=[np.number]).columns.tolist()

    if C.GROUP not in frame.columns:
        raise ValueError(f"Feature matrix has no '{C.GROUP}' column to derive labels from")

    X = frame[columns].to_numpy(dtype=float)
    y = make_binary_labels(frame[C.GROUP], control_groups).to_numpy()

    if len(np.unique(y)) < 2:
        raise ValueError(f"Need both control and treated wells, found only: {np.unique(y).tolist()}")

    return frame, columns, X, y


def _make_classifier(k: int, standardise: bool) -> Union[KNeighborsClassifier, Pipeline]:
    knn = KNeighborsClassifier(n_neighbors=k)
    if standardise:
        return Pipeline([("scaler", StandardScaler()), ("knn", knn)])
    return knn


def _can_stratify(y: np.ndarray, n_test: int) -> bool:
    _, counts = np.unique(y, return_counts=True)
    n_classes = len(counts)
    return counts.min() >= 2 and n_classes <= n_test <= len(y) - n_classes


# =============================================================================
# Training
# =============================================================================

def train_knn_classifier(
    features: Union[FeatureMatrixResult, pd.DataFrame],
    k: int = 3,
    test_fraction: float = 0.3,
    random_state: int = 42,
    stratify: bool = True,
    control_groups: Optional[Sequence[Union[str, Group]]] = None,
    standardise: bool = False,
    feature_columns: Optional[List[str]] = None,
) -> ClassificationResult:
    """
    Train a kNN classifier on a random split and evaluate it on the held-out wells.

    Args:
        features: Feature matrix with a ``group`` column
        k: Number of neighbours
        test_fraction: Fraction of wells held out for evaluation
        random_state: Seed for the split
        stratify: Keep the control/treated ratio in both splits when possible
        control_groups: Groups labelled as control
        standardise: Scale features before the distance computation
        feature_columns: Numeric columns to use when ``features`` is a DataFrame

    Returns:
        ClassificationResult

    Raises:
        ValueError: For invalid k or split fraction, or if only one label is present
    """
    if k < 1:
        raise ValueError(f"k must be at least 1, got {k}")
    if not 0 < test_fraction < 1:
        raise ValueError(f"test_fraction must be in (0, 1), got {test_fraction}")

    frame, columns, X, y = _prepare_inputs(features, feature_columns, control_groups)
    wells = np.asarray(frame.index)

    n_test = int(np.ceil(test_fraction * len(y)))
    use_stratify = stratify and _can_stratify(y, n_test)
    if stratify and not use_stratify:
        logger.warning("Too few wells per label to stratify the split; using a random split")

    X_train, X_test, y_train, y_test, wells_train, wells_test = train_test_split(
        X, y, wells,
        test_size=test_fraction,
        random_state=random_state,
        stratify=y if use_stratify else None,
    )

    if k > len(y_train):
        raise ValueError(f"k={k} exceeds the number of training wells ({len(y_train)})")

    classifier = _make_classifier(k, standardise)
    classifier.fit(X_train, y_train)
    y_pred = classifier.predict(X_test)

    cm = pd.DataFrame(
        confusion_matrix(y_test, y_pred, labels=CLASS_ORDER),
        index=pd.Index(CLASS_ORDER, name="actual"),
        columns=pd.Index(CLASS_ORDER, name="predicted"),
    )
    error_rate = float(1.0 - accuracy_score(y_test, y_pred))

    predictions = pd.DataFrame(
        {"actual": y_test, "predicted": y_pred},
        index=pd.Index(wells_test, name=C.WELL),
    )

    logger.info(
        f"Trained kNN (k={k}) on {len(y_train)} wells; "
        f"misclassification rate on {len(y_test)} held-out wells: {error_rate:.3f}"
    )

    return ClassificationResult(
        classifier=classifier,
        k=k,
        confusion_matrix=cm,
        misclassification_rate=error_rate,
        predictions=predictions,
        train_wells=list(wells_train),
        test_wells=list(wells_test),
        feature_columns=list(columns),
    )


def select_k(
    features: Union[FeatureMatrixResult, pd.DataFrame],
    k_values: Sequence[int] = (1, 3, 5, 7, 9),
    cv_folds: int = 5,
    random_state: int = 42,
    control_groups: Optional[Sequence[Union[str, Group]]] = None,
    standardise: bool = False,
    feature_columns: Optional[List[str]] = None,
) -> KSelectionResult:
    """
    Choose k by stratified cross-validated accuracy.

    Candidates larger than the smallest training fold are skipped. Ties go to
    the smaller k.

    Args:
        features: Feature matrix with a ``group`` column
        k_values: Candidate numbers of neighbours
        cv_folds: Requested number of folds (reduced to the smallest label count)
        random_state: Seed for fold shuffling
        control_groups: Groups labelled as control
        standardise: Scale features before the distance computation
        feature_columns: Numeric columns to use when ``features`` is a DataFrame

    Returns:
        KSelectionResult
    """
    _, _, X, y = _prepare_inputs(features, feature_columns, control_groups)

    _, label_counts = np.unique(y, return_counts=True)
    n_folds = min(cv_folds, int(label_counts.min()))
    if n_folds < 2:
        raise ValueError("Need at least 2 wells per label for cross-validation")
    if n_folds < cv_folds:
        logger.warning(f"Reduced cross-validation from {cv_folds} to {n_folds} folds")

    max_train = len(y) - int(np.ceil(len(y) / n_folds))
    cv = StratifiedKFold(n_splits=n_folds, shuffle=True, random_state=random_state)

    rows = []
    for k in sorted(set(k_values)):
        if k < 1 or k > max_train:
            logger.debug(f"Skipping k={k}: outside 1..{max_train}")
            continue
        scores = cross_val_score(_make_classifier(k, standardise), X, y, cv=cv, scoring="accuracy")
        rows.append({"k": k, "mean_accuracy": scores.mean(), "std_accuracy": scores.std()})

    if not rows:
        raise ValueError(f"No candidate k in {list(k_values)} fits {max_train} training wells")

    table = pd.DataFrame(rows)
    best_k = int(table.loc[table["mean_accuracy"].idxmax(), "k"])

    logger.info(f"Selected k={best_k} by {n_folds}-fold cross-validation")
    return KSelectionResult(scores=table, best_k=best_k, cv_folds=n_folds)
