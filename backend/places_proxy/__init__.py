"""Tenant-scoped caching proxy for Google Place Details."""

__version__ = "0.1.0"
