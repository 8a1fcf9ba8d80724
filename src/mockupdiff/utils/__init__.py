"""Utility functions used across the project."""

from .normalize import NormalizedPair, normalize_pair

__all__ = [
    "NormalizedPair",
    "normalize_pair",
]
