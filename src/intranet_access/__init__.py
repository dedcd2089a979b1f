"""Role and permission authorization core for the company intranet."""

__version__ = "0.1.0"

__all__ = ["__version__"]
