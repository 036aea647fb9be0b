"""Long-term memory core for LLM agents: reconsolidation, retry and diagnostics."""

__version__ = "0.1.0"

__all__ = [
    "config",
    "core",
    "memory",
]
