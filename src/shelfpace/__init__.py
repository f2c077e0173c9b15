"""shelfpace: reading session tracking with pace and finish-date forecasts."""

__version__ = "0.1.0"
