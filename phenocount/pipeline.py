"""
End-to-end screening analysis pipeline.

``ScreenPipeline`` runs the stages in order (load, reshape, join, normalise,
pivot, then PCA and kNN) and returns a ``PipelineResult`` holding every
intermediate table together with the merged diagnostics of all stages.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import pandas as pd

from phenocount.analysis.classification import (
    ClassificationResult,
    KSelectionResult,
    select_k,
    train_knn_classifier,
)
from phenocount.analysis.pca import PCAResult, run_pca
from phenocount.data import columns as C
from phenocount.data.annotation import load_annotation, validate_annotation
from phenocount.data.counts import load_count_matrix, validate_count_matrix
from phenocount.data.wells import normalise_well_ids
from phenocount.diagnostics import Diagnostics
from phenocount.processing.features import FeatureMatrixResult, build_feature_matrix
from phenocount.processing.join import join_annotation
from phenocount.processing.normalisation import normalise_counts
from phenocount.processing.reshape import counts_to_long
from phenocount.utils.config import ScreenConfig
from phenocount.utils.io import ensure_dir, save_json, save_table
from phenocount.utils.logging import logger


# =============================================================================
# Pipeline Result
# =============================================================================

@dataclass
class PipelineResult:
    """All tables produced by one pipeline run."""

    annotation: pd.DataFrame
    count_matrix: pd.DataFrame
    counts_long: pd.DataFrame
    joined: pd.DataFrame
    processed: pd.DataFrame
    features: FeatureMatrixResult
    diagnostics: Diagnostics = field(default_factory=Diagnostics)

    # Modeling stage (None until analysed)
    pca: Optional[PCAResult] = None
    k_selection: Optional[KSelectionResult] = None
    classification: Optional[ClassificationResult] = None

    # Features listed per component in the summary and report
    n_top_loadings: int = 5

    @property
    def n_wells(self) -> int:
        return len(self.features)

    def summary(self) -> str:
        """Get summary string."""
        lines = [
            "Screen analysis",
            f"  Wells: {self.n_wells}, phenotype classes: {len(self.features.feature_columns)}",
            f"  Groups: {self.features.labels.value_counts().to_dict()}",
        ]
        sections = [self.diagnostics.summary()]
        if self.pca is not None:
            sections.append(self.pca.summary(n_loadings=self.n_top_loadings))
        if self.k_selection is not None:
            sections.append(self.k_selection.summary())
        if self.classification is not None:
            sections.append(self.classification.summary())
        return "\n".join(lines + sections)

    def save(
        self,
        output_dir: Union[str, Path],
        save_figures: bool = True,
        figure_format: str = "png",
    ) -> Dict[str, Path]:
        """
        Write tables, diagnostics and (optionally) figures to a directory.

        Args:
            output_dir: Destination directory (created if needed)
            save_figures: Also render and save the standard plots
            figure_format: Image format for figures

        Returns:
            Mapping of artefact name to path
        """
        output_dir = ensure_dir(output_dir)
        paths: Dict[str, Path] = {
            "processed": save_table(self.processed, output_dir / "processed.csv"),
            "feature_matrix": save_table(
                self.features.matrix, output_dir / "feature_matrix.csv", index=True,
            ),
            "diagnostics": save_json(self.diagnostics.to_dict(), output_dir / "diagnostics.json"),
        }

        report = {}
        if self.pca is not None:
            report["pca"] = self.pca.to_dict(n_loadings=self.n_top_loadings)
            paths["pca_scores"] = save_table(self.pca.scores, output_dir / "pca_scores.csv", index=True)
        if self.k_selection is not None:
            report["k_selection"] = {
                "best_k": self.k_selection.best_k,
                "scores": self.k_selection.scores.to_dict(orient="records"),
            }
        if self.classification is not None:
            report["classification"] = self.classification.to_dict()
        if report:
            paths["report"] = save_json(report, output_dir / "report.json")

        if save_figures:
            paths.update(self._save_figures(output_dir, figure_format))

        logger.info(f"Saved {len(paths)} artefacts to {output_dir}")
        return paths

    def _save_figures(self, output_dir: Path, figure_format: str) -> Dict[str, Path]:
        from phenocount.analysis import visualisation as viz

        figures = {"composition": viz.plot_class_composition(self.processed)[0]}
        if self.pca is not None:
            if self.pca.n_components >= 2:
                figures["pca_scores"] = viz.plot_pca_scores(self.pca)[0]
            figures["pca_scree"] = viz.plot_scree(self.pca)[0]
            figures["pca_loadings"] = viz.plot_loadings(self.pca, component=1)[0]
        if self.k_selection is not None:
            figures["k_selection"] = viz.plot_k_selection(self.k_selection)[0]
        if self.classification is not None:
            figures["confusion_matrix"] = viz.plot_confusion_matrix(self.classification)[0]

        return {
            name: viz.save_figure(fig, output_dir / f"{name}.{figure_format}")
            for name, fig in figures.items()
        }


# =============================================================================
# Pipeline
# =============================================================================

class ScreenPipeline:
    """
    Run the screening analysis from input files to a trained classifier.

    Example:
        >>> config = ScreenConfig()
        >>> config.data.annotation_path = "plate_layout.xlsx"
        >>> config.data.counts_path = "class_counts.csv"
        >>> pipeline = ScreenPipeline(config)
        >>> result = pipeline.run()
        >>> print(result.summary())
    """

    def __init__(self, config: Optional[ScreenConfig] = None):
        self.config = config or ScreenConfig()
        logger.debug(f"Initialised ScreenPipeline with {self.config}")

    # =========================================================================
    # Stages
    # =========================================================================

    def load_inputs(
        self,
        annotation_path: Optional[Union[str, Path]] = None,
        counts_path: Optional[Union[str, Path]] = None,
    ) -> Tuple[pd.DataFrame, pd.DataFrame]:
        """
        Load the plate layout and count matrix.

        Paths default to those in ``config.data``.

        Raises:
            ValueError: If a path is given neither here nor in the config
            MissingInputError: If a file is absent or unreadable
        """
        data = self.config.data
        annotation_path = annotation_path or data.annotation_path
        counts_path = counts_path or data.counts_path

        if annotation_path is None or counts_path is None:
            raise ValueError("Both an annotation path and a counts path are required")

        annotation = load_annotation(
            annotation_path,
            well_column=data.well_column,
            group_column=data.group_column,
            gene_column=data.gene_column,
            sheet_name=data.sheet_name,
        )
        count_matrix = load_count_matrix(counts_path)
        return annotation, count_matrix

    def process(self, annotation: pd.DataFrame, count_matrix: pd.DataFrame) -> PipelineResult:
        """
        Reshape, join, normalise and pivot already-loaded inputs.

        Args:
            annotation: Validated annotation table, or a raw layout with the
                configured column names
            count_matrix: Count matrix (classes x raw wells)

        Returns:
            PipelineResult without modeling results
        """
        settings = self.config.processing

        if not {C.WELL, C.GROUP, C.GENE_SYMBOL}.issubset(annotation.columns):
            annotation = validate_annotation(
                annotation,
                well_column=self.config.data.well_column,
                group_column=self.config.data.group_column,
                gene_column=self.config.data.gene_column,
            )
        count_matrix = validate_count_matrix(count_matrix)

        normalisation = normalise_well_ids(count_matrix.columns, strict=settings.strict_identifiers)
        counts_long = counts_to_long(count_matrix, normalisation=normalisation)

        joined = join_annotation(counts_long, annotation, strict=settings.strict_identifiers)

        transformed = normalise_counts(
            joined.table,
            on_empty_well=settings.on_empty_well,
            degenerate_policy=settings.degenerate_policy,
            clip_epsilon=settings.clip_epsilon,
        )

        features = build_feature_matrix(transformed.table, missing=settings.missing_features)

        diagnostics = (
            normalisation.diagnostics
            .merge(joined.diagnostics)
            .merge(transformed.diagnostics)
            .merge(features.diagnostics)
        )
        if diagnostics.has_issues:
            logger.warning("Pipeline finished with diagnostics:\n" + diagnostics.summary())

        return PipelineResult(
            annotation=annotation,
            count_matrix=count_matrix,
            counts_long=counts_long,
            joined=joined.table,
            processed=transformed.table,
            features=features,
            diagnostics=diagnostics,
        )

    def analyse(self, result: PipelineResult) -> PipelineResult:
        """
        Run PCA, k selection and kNN classification on a processed result.

        Returns:
            A new PipelineResult with the modeling fields filled in
        """
        pca_config = self.config.pca
        clf_config = self.config.classifier

        pca = run_pca(
            result.features,
            n_components=pca_config.n_components,
            standardise=pca_config.standardise,
        )

        k_selection = None
        k = clf_config.k
        if clf_config.k_candidates:
            k_selection = select_k(
                result.features,
                k_values=clf_config.k_candidates,
                cv_folds=clf_config.cv_folds,
                random_state=clf_config.random_state,
                control_groups=clf_config.control_groups,
                standardise=clf_config.standardise,
            )
            if clf_config.auto_select_k:
                k = k_selection.best_k

        classification = train_knn_classifier(
            result.features,
            k=k,
            test_fraction=clf_config.test_fraction,
            random_state=clf_config.random_state,
            stratify=clf_config.stratify,
            control_groups=clf_config.control_groups,
            standardise=clf_config.standardise,
        )

        return dataclasses.replace(
            result,
            pca=pca,
            k_selection=k_selection,
            classification=classification,
            n_top_loadings=pca_config.n_top_loadings,
        )

    def run(
        self,
        annotation_path: Optional[Union[str, Path]] = None,
        counts_path: Optional[Union[str, Path]] = None,
        analyse: bool = True,
    ) -> PipelineResult:
        """
        Load inputs, process them and (optionally) run the modeling stage.

        Results are written to ``config.output.output_dir`` when it is set.
        """
        annotation, count_matrix = self.load_inputs(annotation_path, counts_path)
        result = self.process(annotation, count_matrix)

        if analyse:
            result = self.analyse(result)

        output = self.config.output
        if output.output_dir:
            result.save(
                output.output_dir,
                save_figures=output.save_figures,
                figure_format=output.figure_format,
            )

        return result

    def __repr__(self) -> str:
        return f"ScreenPipeline(experiment_name='{self.config.experiment_name}')"


def run_pipeline(
    annotation_path: Union[str, Path],
    counts_path: Union[str, Path],
    config: Optional[ScreenConfig] = None,
    analyse: bool = True,
) -> PipelineResult:
    """
    Convenience function to run the full pipeline.

    Args:
        annotation_path: Plate layout file
        counts_path: Count matrix file
        config: Pipeline configuration
        analyse: Run PCA and kNN after processing

    Returns:
        PipelineResult
    """
    return ScreenPipeline(config).run(annotation_path, counts_path, analyse=analyse)
