"""Pipeline orchestration modules."""

from covdiff.agents.pipelines.compare import (
    ComparePipeline,
    ComparePipelineConfig,
    ComparePipelineResult,
    CoverageSource,
    FileCoverageSource,
    StoredCoverageSource,
)

__all__ = [
    "ComparePipeline",
    "ComparePipelineConfig",
    "ComparePipelineResult",
    "CoverageSource",
    "FileCoverageSource",
    "StoredCoverageSource",
]
