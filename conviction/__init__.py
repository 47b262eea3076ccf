"""Wallet conviction analytics and cross-provider trust resolution."""

__version__ = "0.1.0"
