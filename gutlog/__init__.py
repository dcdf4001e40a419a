"""gutlog - health-tracking message understanding."""

__version__ = "0.1.0"
