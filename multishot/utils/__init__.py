"""Utility functions."""

from multishot.utils.discretization import discretize

__all__ = [
    "discretize",
]
