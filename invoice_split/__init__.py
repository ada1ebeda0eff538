"""Proportional allocation of amounts across calendar periods."""

__version__ = "0.1.0"
