"""
Configuration management for PhenoCount.

Hierarchical configuration built from dataclasses, merged with OmegaConf and
stored as YAML so an analysis run can be reproduced from a single file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml
from omegaconf import OmegaConf

# =========================
# Configuration Dataclasses
# =========================

@dataclass
class DataConfig:
    """Input files and their column layout."""

    # Paths
    annotation_path: Optional[str] = None
    counts_path: Optional[str] = None

    # Plate layout columns (matched case-insensitively)
    well_column: str = "Position"
    group_column: str = "Group"
    gene_column: str = "Gene Symbol"
    sheet_name: Optional[str] = None # Excel sheet; None reads the first sheet

@dataclass
class ProcessingConfig:
    """Policies for the reshaping and transformation stages."""

    # Identifiers
    strict_identifiers: bool = False # Raise instead of reporting unmatched wells

    # Normalisation
    on_empty_well: str = "drop" # Options: drop, raise
    degenerate_policy: str = "clip" # Options: clip, flag, raise
    clip_epsilon: float = 1e-4

    # Feature matrix
    missing_features: str = "raise" # Options: raise, nan

@dataclass
class PCAConfig:
    """Configuration for the exploratory PCA."""

    n_components: Optional[int] = None # None keeps min(n_wells, n_classes)
    standardise: bool = True
    n_top_loadings: int = 5

@dataclass
class ClassifierConfig:
    """Configuration for the knn treated-vs-control classifier."""

    k: int = 3
    test_fraction: float = 0.3
    random_state: int = 42
    stratify: bool = True
    control_groups: list[str] = field(default_factory=lambda: ["negative", "scrambled", "empty"])

    standardise: bool = False

    # Hyperparameter search; empty list skips it
    k_candidates: list[int] = field(default_factory=lambda: [1, 3, 5, 7, 9])
    cv_folds: int = 5
    auto_select_k: bool = False # Train with the cross-validated best k instead of `k`

@dataclass
class OutputConfig:
    """Where and how to write report artefacts."""

    output_dir: Optional[str] = None # None keeps results in memory only
    save_figures: bool = True
    figure_format: str = "png"

@dataclass
class ScreenConfig:
    """Master config for a PhenoCount analysis.

    Example:
        >>> config = ScreenConfig()
        >>> config.classifier.k = 5
        >>> config.save("configs/plate_1.yaml")
        >>>
        >>> config = ScreenConfig.from_yaml("configs/plate_1.yaml")
    """

    data: DataConfig = field(default_factory=DataConfig)
    processing: ProcessingConfig = field(default_factory=ProcessingConfig)
    pca: PCAConfig = field(default_factory=PCAConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    # Experiment metadata
    experiment_name: str = "default"
    description: str = ""

    def save(self, path: str | Path) -> None:
        """Save the configuration to a YAML file.

        Args:
            path: Output path.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        conf = OmegaConf.structured(self)

        with open(path, "w") as f:
            OmegaConf.save(conf, f)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "ScreenConfig":
        """
        Load configuration from a YAML file, filling unset values with defaults.

        Args:
            path: Path to the YAML configuration file.

        Returns:
            ScreenConfig instance.
        """
        path = Path(path)

        with open(path) as f:
            raw_config = yaml.safe_load(f) or {}

        return cls.from_dict(raw_config)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "ScreenConfig":
        """
        Create configuration from dictionary.

        Args:
            config_dict: Configuration dictionary (partial dictionaries are merged with defaults).

        Returns:
            ScreenConfig instance.
        """
        default_conf = OmegaConf.structured(cls())
        loaded_conf = OmegaConf.create(config_dict)
        merged_conf = OmegaConf.merge(default_conf, loaded_conf)

        return OmegaConf.to_object(merged_conf)

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to a plain dictionary."""
        return OmegaConf.to_container(OmegaConf.structured(self))

    def __repr__(self) -> str:
        return f"ScreenConfig(experiment_name='{self.experiment_name}')"

# =================
# Utility Functions
# =================

def load_config(path: str | Path) -> ScreenConfig:
    """
    Load configuration from YAML file.

    Args:
        path: Path to YAML configuration file.

    Returns:
        ScreenConfig instance.
    """
    return ScreenConfig.from_yaml(path)

def create_default_config(output_path: Optional[str | Path] = None) -> ScreenConfig:
    """
    Create a default configuration, optionally saving to a file.

    Args:
        output_path: If provided, save config to this path.

    Returns:
        Default ScreenConfig instance.
    """
    config = ScreenConfig()

    if output_path:
        config.save(output_path)

    return config
