"""Analysis, reporting and pipeline components."""
