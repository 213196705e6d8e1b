"""Keep per-account web sessions alive on the data agent application."""

__version__ = "0.1.0"
