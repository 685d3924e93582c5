"""Hybrid recommendation engine for mental-health centers."""

__version__ = "0.1.0"
