"""LncRunner: job orchestration for the LncRAnalyzer container pipeline."""

__version__ = "1.0.0"
