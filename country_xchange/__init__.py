"""Country metadata and exchange rate cache service."""

__version__ = "1.0.0"
