"""Prompt templates."""

from evogen.llm.prompts.base import PromptSection, PromptTemplate, RenderedPrompt
from evogen.llm.prompts.synthesis import JUnit5SynthesisTemplate

__all__ = ["JUnit5SynthesisTemplate", "PromptSection", "PromptTemplate", "RenderedPrompt"]
