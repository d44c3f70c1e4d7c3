"""
Pipeline module for the detector monitor bridge.

The pipeline orchestrates the full processing flow:
- Encoded frame acquisition from observation sources
- Strip decoding and duplicate detection
- Header synthesis and publication
- Viewer notification
"""

from .engine import (
    PipelineEngine,
    PipelineConfig,
    PipelineStats,
    PollOutcome,
    create_engine_from_config,
)

__all__ = [
    "PipelineEngine",
    "PipelineConfig",
    "PipelineStats",
    "PollOutcome",
    "create_engine_from_config",
]
