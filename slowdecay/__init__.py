"""Slowness and decay-rate profiles from core-diffracted wave alignments."""

__version__ = "0.1.0"
