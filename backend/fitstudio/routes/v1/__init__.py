"""Versioned API routers mounted under ``settings.api_prefix``."""

from . import bookings, classes, health, prometheus

__all__ = ["bookings", "classes", "health", "prometheus"]
