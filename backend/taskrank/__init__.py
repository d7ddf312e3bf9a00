"""Task query understanding and ranking service."""

__version__ = "1.0.0"
