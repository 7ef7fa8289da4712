"""tenax: a retrying HTTP request client built on requests."""

__version__ = "0.1.0"
