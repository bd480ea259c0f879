"""
PhenoCount command-line scripts.

Entry points (available after `pip install -e .`):
    - phenocount-run: Run the screening analysis for one plate

Direct usage:
    python scripts/run_analysis.py --help
"""

__all__ = [
    "run_analysis",
]
