"""
Column names shared by every table in the pipeline.
"""

WELL = "well"
RAW_WELL = "raw_well"
PHENOTYPE_CLASS = "phenotype_class"
COUNT = "count"
GROUP = "group"
GENE_SYMBOL = "gene_symbol"
TOTAL = "total"
PERCENTAGE = "percentage"
Z_SCORE = "z_score"
DEGENERATE = "degenerate"
VALUE = "value"

# Label columns carried alongside the numeric features of a feature matrix
LABEL_COLUMNS = [GROUP, GENE_SYMBOL]
