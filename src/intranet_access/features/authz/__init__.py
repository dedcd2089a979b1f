"""Authorization evaluator and its request/decision types."""

from .evaluator import AuthorizationEvaluator, evaluate
from .schemas import (
    EMPTY_PERMISSIONS,
    AccessRequirement,
    AuthorizationDecision,
    DenialReason,
    PermissionSet,
)

__all__ = [
    "EMPTY_PERMISSIONS",
    "AccessRequirement",
    "AuthorizationDecision",
    "AuthorizationEvaluator",
    "DenialReason",
    "PermissionSet",
    "evaluate",
]
