"""Training plan modification and consistency engine."""

__version__ = "0.1.0"
