"""Measured Docker Compose start-up, quotes from a software TDX model, and report-derived keys."""

__version__ = "1.0.0"

__all__ = ["__version__"]