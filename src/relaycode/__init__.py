"""relaycode: terminal coding agent driving LLM tool-calling conversations."""

__version__ = "0.1.0"
