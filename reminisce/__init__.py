"""Shared services for the Reminisce memory aid."""

__version__ = "0.3.0"
