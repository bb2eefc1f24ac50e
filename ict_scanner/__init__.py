"""ICT-style multi-timeframe signal scanner on Bybit market data."""

__version__ = "0.1.0"
