"""Yari API: expert availability and session booking service."""

__version__ = "0.1.0"
