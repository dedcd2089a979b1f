"""Common utilities and helpers used across the access core."""

__all__ = [
    "logging",
    "schema",
]
