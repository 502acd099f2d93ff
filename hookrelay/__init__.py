"""GitHub webhook relay and comment command dispatcher."""

__version__ = "0.1.0"
