"""Post-processing helpers for rendered documents."""
