"""codexio: turn a source tree into a single LLM prompt."""

__version__ = "0.1.0"
