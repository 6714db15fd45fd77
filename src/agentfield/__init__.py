"""Spatial index, agent store and tick scheduler for small agent-based models."""

__version__ = "0.1.0"
