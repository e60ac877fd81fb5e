"""Matrix push rule matching and notification dispatch."""

__version__ = "0.1.0"
