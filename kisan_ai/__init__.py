"""Kisan AI backend: disease diagnosis, market prices, schemes and weather advice for farmers."""

__version__ = "1.0.0"
