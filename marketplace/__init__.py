"""Marketplace shop discovery and dashboard API."""

__version__ = "1.0.0"
