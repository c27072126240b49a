"""Interactive script sessions over line-delimited JSON."""

__version__ = "0.1.0"
