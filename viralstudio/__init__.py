"""Viral Studio - AI short-video content studio."""

__version__ = "0.1.0"
