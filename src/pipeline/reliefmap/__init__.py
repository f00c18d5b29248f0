"""Population density over shaded relief."""

__version__ = "0.1.0"
