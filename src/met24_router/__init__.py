"""Cost-optimized, privacy-aware multi-provider LLM router."""

__version__ = "0.1.0"
