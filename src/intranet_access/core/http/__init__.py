"""HTTP bridge: FastAPI dependencies and exception handlers."""

from .dependencies import get_current_identity, get_evaluator, require_access
from .errors import register_access_exception_handlers

__all__ = [
    "get_current_identity",
    "get_evaluator",
    "register_access_exception_handlers",
    "require_access",
]
