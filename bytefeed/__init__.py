"""Newsletter insight extraction and personalized feed ranking."""

__version__ = "0.1.0"
