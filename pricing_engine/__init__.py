"""Pricing engine: quote generation API and batch worker."""

__version__ = "0.1.0"
