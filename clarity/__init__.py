"""Routing and content selection engine for guided reflection journeys."""

__version__ = "0.1.0"
