"""Drug test intake: result classification, confirmation and record matching."""

__version__ = "1.0.0"
