"""Proximity discovery and live map rendering for the crew directory."""

__version__ = "0.1.0"
