"""Prometheus exporter for MySQL-compatible servers."""

__version__ = "0.1.0"
