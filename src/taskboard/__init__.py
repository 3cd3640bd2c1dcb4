"""In-memory task board service."""

__version__ = "0.1.0"
