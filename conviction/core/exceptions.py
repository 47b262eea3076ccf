"""
Application-level exceptions.

Provider failures are recovered at the gateway and resolver boundaries;
input errors are raised before any computation starts.
"""

from typing import Optional


class ConvictionError(Exception):
    """Base class for all conviction analytics errors."""


class ProviderError(ConvictionError):
    """An upstream provider call failed (transport, timeout, or non-2xx)."""

    def __init__(self, provider: str, message: str, status: Optional[int] = None):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status = status


class ProviderPayloadError(ProviderError):
    """A provider answered but its payload did not match the expected schema."""


class ProviderNotConfigured(ProviderError):
    """The provider needs an API key that is not configured."""

    def __init__(self, provider: str):
        super().__init__(provider, "API key not configured")


class MarketDataUnavailable(ConvictionError):
    """Every market data provider failed for one lookup."""


class InvalidLedgerError(ConvictionError, ValueError):
    """The supplied trade ledger is malformed or incomplete."""


class InvalidAddressError(ConvictionError, ValueError):
    """The address matches neither the EVM nor the Solana format."""
