"""Per-unit processing pipeline."""

from evogen.pipeline.unit import UnitPipeline

__all__ = ["UnitPipeline"]
