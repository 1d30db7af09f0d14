"""Inspiration test generators."""

from evogen.generators.evosuite import EvoSuiteGenerator, InspirationGenerator

__all__ = ["EvoSuiteGenerator", "InspirationGenerator"]
