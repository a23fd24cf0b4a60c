"""Post-processing of Mplus growth mixture model runs: fit comparison, missing data diagnostics, class validation."""

__version__ = "0.1.0"
