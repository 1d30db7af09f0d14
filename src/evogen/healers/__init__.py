"""Self-healing compilation of synthesized tests."""

from evogen.healers.self_healing import HealingResult, SelfHealingCompiler

__all__ = ["HealingResult", "SelfHealingCompiler"]
