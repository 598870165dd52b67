"""Operator console for a fleet of autonomous agents."""

__version__ = "0.1.0"
