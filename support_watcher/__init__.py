"""Prometheus exporter for the Helper Heidi (Nephthys) support bot."""

__version__ = "0.1.0"
