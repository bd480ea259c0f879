# %% [markdown]
# # 01: Screening Plate Analysis
#
# This notebook walks through the PhenoCount analysis of one siRNA screening plate. The input is a plate layout (which siRNA or control sits in each well) and a matrix of cell counts per phenotype class per well, as produced by a cell classifier run on the plate's images.
#
# ## Learning Objectives
#
# By the end of this notebook, you will be able to:
#
# 1. **Load a plate layout and a class-count matrix** from Excel or delimited files
# 2. **Normalise well identifiers** so instrument names match layout positions
# 3. **Compute class percentages and logit z-scores** per well
# 4. **Read the diagnostics** for unmatched, empty and degenerate wells
# 5. **Explore wells with PCA** and find the classes driving each component
# 6. **Classify treated versus control wells** with k-nearest neighbours
#
# ---

# %% [markdown]
# ## 1. Background
#
# ### Phenotype classes
#
# Every cell on the plate is assigned to one phenotype class, for example a mitotic stage:
#
# | Class | Meaning |
# |-------|---------|
# | inter | Interphase |
# | prometa | Prometaphase |
# | meta | Metaphase |
# | ana | Anaphase |
# | apo | Apoptotic |
#
# Knocking down a gene required for mitosis shifts cells out of interphase and into the arrested or apoptotic classes.
#
# ### Why a logit transform?
#
# Class percentages are bounded in [0, 1] and compressed near the bounds. The logit `ln(p / (1 - p))` maps them to the real line, so a shift from 1% to 2% counts about as much as a shift from 50% to 67%. A percentage of exactly 0 or 1 has no finite logit; PhenoCount flags those (well, class) pairs and, by default, clips them.
#
# ---

# %% [markdown]
# ## 2. Setup

# %%
from pathlib import Path

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from phenocount import ScreenConfig, ScreenPipeline, setup_logging
from phenocount.data.wells import normalise_well_id, normalise_well_ids
from phenocount.analysis.classification import make_binary_labels
from phenocount.analysis.visualisation import (
    plot_class_composition,
    plot_confusion_matrix,
    plot_k_selection,
    plot_loadings,
    plot_pca_scores,
    plot_scree,
)

setup_logging(level="INFO")

OUTPUT_DIR = Path("outputs/notebook_01")
OUTPUT_DIR.mkdir(parents=True, exist_ok=True)

# %% [markdown]
# ## 3. A Synthetic Plate
#
# To keep the notebook self-contained we simulate a 96-well plate. Half of the wells carry an siRNA that arrests cells in prometaphase; the rest are negative, scrambled or empty controls. Counts are Poisson-distributed around class-specific means.

# %%
CLASSES = ["inter", "prometa", "meta", "ana", "apo"]
CONTROL_MEANS = np.array([800, 20, 30, 20, 10])
ARREST_MEANS = np.array([450, 280, 40, 10, 90])

rng = np.random.default_rng(0)
layout_rows, counts = [], {}

for i, row in enumerate("ABCDEFGH"):
    for col in range(1, 13):
        is_target = (col % 2 == 0)
        group = "target" if is_target else ["negative", "scrambled", "empty"][(i + col) % 3]
        layout_rows.append(
            {
                "Position": f"{row}{col:02d}_01",
                "Group": group,
                "Gene Symbol": f"GENE{i * 12 + col}" if is_target else None,
            }
        )
        counts[f"W{row}{col:02d}_P1"] = rng.poisson(ARREST_MEANS if is_target else CONTROL_MEANS)

layout = pd.DataFrame(layout_rows)
count_matrix = pd.DataFrame(counts, index=CLASSES)

layout_path = OUTPUT_DIR / "plate_layout.xlsx"
counts_path = OUTPUT_DIR / "class_counts.csv"
layout.to_excel(layout_path, index=False)
count_matrix.to_csv(counts_path)

print(f"Layout: {layout.shape}, count matrix: {count_matrix.shape}")
layout.head()

# %% [markdown]
# ## 4. Well Identifiers
#
# The instrument names wells `W<row><column>_P<plate>`, while the layout uses `<row><column>_<plate>` with a two-digit plate number. Normalisation converts the former into the latter and leaves already-normalised identifiers unchanged.

# %%
for raw in ["WA01_P1", "WH12_P3", "A01_01", "not-a-well"]:
    print(f"{raw:>12} -> {normalise_well_id(raw)}")

mapping = normalise_well_ids(count_matrix.columns)
print(f"\nUnparsed identifiers: {mapping.unparsed}")

# %% [markdown]
# ## 5. Processing
#
# `ScreenPipeline.process` reshapes the count matrix, joins the layout, computes percentages and z-scores, and pivots to one row per well.

# %%
config = ScreenConfig(experiment_name="synthetic_plate")
config.data.annotation_path = str(layout_path)
config.data.counts_path = str(counts_path)

pipeline = ScreenPipeline(config)
annotation, counts_loaded = pipeline.load_inputs()
result = pipeline.process(annotation, counts_loaded)

result.processed.head(10)

# %%
# Percentages sum to one within each well
result.processed.groupby("well")["percentage"].sum().describe()

# %%
print(result.diagnostics.summary())

# %%
fig, ax = plot_class_composition(result.processed, wells=result.features.wells[:24])
plt.show()

# %% [markdown]
# ## 6. Exploratory PCA

# %%
result = pipeline.analyse(result)
print(result.pca.summary())

# %%
fig, axes = plt.subplots(1, 2, figsize=(14, 5))
plot_pca_scores(result.pca, ax=axes[0])
plot_scree(result.pca, ax=axes[1])
plt.show()

# %%
fig, ax = plot_loadings(result.pca, component=1)
plt.show()

result.pca.top_loadings(1, n=3)

# %% [markdown]
# ## 7. Treated versus Control Classification
#
# Negative, scrambled and empty wells are labelled `control`; siRNA wells are `treated`. A kNN classifier is trained on 70% of the wells and evaluated on the rest.

# %%
make_binary_labels(result.features.labels).value_counts()

# %%
print(result.classification.summary())

# %%
fig, axes = plt.subplots(1, 2, figsize=(12, 4))
plot_confusion_matrix(result.classification, ax=axes[0])
plot_k_selection(result.k_selection, ax=axes[1])
plt.show()

# %% [markdown]
# ## 8. Degenerate Wells
#
# A well where every cell lands in one class has percentages of exactly 0 and 1. The default `clip` policy keeps the z-scores finite and reports the pairs; `flag` keeps them infinite and `raise` stops the run.

# %%
degenerate_counts = counts_loaded.copy()
degenerate_counts["WA01_P1"] = [500, 0, 0, 0, 0]

clipped = pipeline.process(annotation, degenerate_counts)
print(clipped.diagnostics.degenerate_rows)
clipped.processed.query("well == 'A01_01'")[["phenotype_class", "percentage", "z_score", "degenerate"]]

# %% [markdown]
# ## 9. Saving Results

# %%
paths = result.save(OUTPUT_DIR / "results")
for name, path in paths.items():
    print(f"{name:>18}: {path}")

config.save(OUTPUT_DIR / "config.yaml")

# %% [markdown]
# ---
#
# ## Summary
#
# - Well identifiers from the instrument are normalised before joining the layout
# - Class counts become per-well percentages and then logit z-scores
# - Diagnostics list every well or (well, class) pair that was dropped, clipped or unmatched
# - PCA separates arrested from control wells, driven by the prometaphase and interphase classes
# - kNN on the z-score features distinguishes treated from control wells
#
# The same analysis runs from the command line:
#
# ```bash
# python scripts/run_analysis.py --config outputs/notebook_01/config.yaml --output-dir outputs/plate_1
# ```
