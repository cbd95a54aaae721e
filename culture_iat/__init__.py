"""Implicit Association Test administration: block/trial engine and pygame shell."""

__version__ = "1.0.0"
