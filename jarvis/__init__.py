"""Jarvis — real-time conversational voice engine."""

__version__ = "0.1.0"
