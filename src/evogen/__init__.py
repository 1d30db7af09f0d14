"""evogen — self-healing JUnit 5 test synthesis for Java projects."""

__version__ = "0.1.0"
