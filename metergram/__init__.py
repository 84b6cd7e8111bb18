"""Metrical structure detection for symbolic music with a lexicalized PCFG."""

__version__ = "0.1.0"
