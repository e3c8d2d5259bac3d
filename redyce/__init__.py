"""Requirement extraction for tender (appel d'offres) documents."""

__version__ = "1.0.0"
