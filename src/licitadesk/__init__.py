"""LicitaDesk: bid-monitoring workflow, chat and notification backend."""

__version__ = "1.0.0"
