"""Incremental hypothesis search over voices, beats and meter."""
