"""Gaze trajectory analysis: ingest, culling, density clustering and replay."""

__version__ = "0.1.0"
