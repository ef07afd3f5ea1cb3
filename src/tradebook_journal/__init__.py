"""Trade journal engine for broker orderbook exports."""

__version__ = "0.1.0"
