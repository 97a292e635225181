"""Command-line front-end and library for got work trees."""

__version__ = "0.1.0"
