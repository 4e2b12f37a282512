"""Marketplace order payment and settlement service."""

__version__ = "0.3.0"
