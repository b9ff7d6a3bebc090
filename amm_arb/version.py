"""Version information for the AMM arbitrage CLI."""

__version__ = "0.3.0"
