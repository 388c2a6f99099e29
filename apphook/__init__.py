"""Discover installed applications and register them in the Adrenalin game database."""

__version__ = "1.3.0"
