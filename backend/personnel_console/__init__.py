"""Personnel console client: user directory management."""

__version__ = "1.0.0"
