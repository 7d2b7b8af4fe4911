"""Metrics collection agent, metrics HTTP server and its storage backends."""

__version__ = "0.1.0"