"""Geospatial path-matching engine for live location sharing."""

__version__ = "0.1.0"
