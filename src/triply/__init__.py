"""Trip orchestration engine: locations, fares, trip lifecycle, live sync, suggestions."""

__version__ = "0.1.0"
